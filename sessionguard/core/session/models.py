"""
Session Models

Snapshot types for a trading session and the per-operation validation
results derived from it.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple

from ..errors import (
    MalformedInputError,
    OperationError,
    OperationErrorKind,
    ValidationBlockedError,
)


class SessionStatus(str, Enum):
    """Lifecycle status reported by the session manager."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.STOPPED})


def to_balance(value: Any) -> Decimal:
    """Coerce a balance to Decimal, rejecting negative and non-finite values."""
    if isinstance(value, bool):
        raise MalformedInputError("Balance must be a number", details={"balance": value})
    try:
        balance = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise MalformedInputError("Balance must be a number", details={"balance": str(value)}) from e

    if not balance.is_finite():
        raise MalformedInputError("Balance must be finite", details={"balance": str(value)})
    if balance < 0:
        raise MalformedInputError("Balance cannot be negative", details={"balance": float(balance)})
    return balance


class OperationType(str, Enum):
    """Session control operations."""

    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"


class BalanceStatus(str, Enum):
    """Tri-state sufficiency of a session wallet balance."""

    GOOD = "good"
    LOW = "low"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Session:
    """Read-only snapshot of a session owned by the session manager."""

    session_id: str
    status: SessionStatus
    balance: Decimal
    is_paused: bool = False

    @property
    def paused(self) -> bool:
        return self.status == SessionStatus.PAUSED or self.is_paused

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def snapshot_key(self) -> Tuple[str, SessionStatus, Decimal, bool]:
        """Inputs that validation results depend on."""
        return (self.session_id, self.status, self.balance, self.is_paused)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        trading_state = data.get("tradingState") or {}
        is_paused = data.get("isPaused")
        if is_paused is None:
            is_paused = trading_state.get("isPaused", False)
        return cls(
            session_id=str(data["sessionId"]),
            status=SessionStatus(data["status"]),
            balance=to_balance(data.get("balance")),
            is_paused=bool(is_paused),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "status": self.status.value,
            "balance": float(self.balance),
            "isPaused": self.is_paused,
        }


@dataclass(frozen=True)
class BalanceAssessment:
    """Classification of a balance with a human-readable message."""

    status: BalanceStatus
    message: str
    balance: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "balance": float(self.balance),
        }


@dataclass(frozen=True)
class ValidationResult:
    """Whether a single operation may proceed right now."""

    can_proceed: bool
    error: Optional[OperationError] = None

    @classmethod
    def allowed(cls) -> "ValidationResult":
        return cls(can_proceed=True)

    @classmethod
    def blocked(cls, error: OperationError) -> "ValidationResult":
        return cls(can_proceed=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canProceed": self.can_proceed,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass(frozen=True)
class OperationValidations:
    """Validation results for pause, resume and stop of one session snapshot."""

    pause: ValidationResult
    resume: ValidationResult
    stop: ValidationResult
    balance: Optional[BalanceAssessment] = field(default=None, compare=False)

    def __getitem__(self, operation: OperationType) -> ValidationResult:
        return getattr(self, OperationType(operation).value)

    def __iter__(self) -> Iterator[Tuple[OperationType, ValidationResult]]:
        for operation in OperationType:
            yield operation, self[operation]

    def require(self, operation: OperationType) -> None:
        """
        Raises:
            ValidationBlockedError: If the operation may not proceed
        """
        operation = OperationType(operation)
        result = self[operation]
        if not result.can_proceed:
            raise ValidationBlockedError(operation.value, result.error)

    @property
    def controls_visible(self) -> bool:
        """False when the session is terminal and controls should be hidden."""
        return not all(
            result.error is not None and result.error.kind == OperationErrorKind.SESSION_TERMINAL
            for _, result in self
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {op.value: result.to_dict() for op, result in self}
        if self.balance is not None:
            data["balanceStatus"] = self.balance.to_dict()
        return data
