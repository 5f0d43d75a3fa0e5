"""
Operation Validator

Decides whether pause, resume and stop are currently legal for a session
snapshot. A blocked operation is a regular result carrying an
OperationError, never an exception.

This is a UX gate: the session manager enforces the same rules again when
the operation executes.
"""

from decimal import Decimal
from typing import Optional

from ..errors import MalformedInputError, OperationError, OperationErrorKind
from .balance import MIN_REQUIRED_SOL, MIN_TRADE_SOL, classify
from .models import (
    BalanceAssessment,
    BalanceStatus,
    OperationType,
    OperationValidations,
    Session,
    ValidationResult,
)


class OperationValidator:
    """
    Evaluates session control operations against state and balance.

    Rules are evaluated independently per operation:
    - Terminal sessions block everything
    - Resume needs a paused session and enough balance to trade again
    - Pause needs a running session and at least the minimum trade balance
    - Stop is always available on a live session
    """

    def validate(self, session: Session) -> OperationValidations:
        """
        Validate all operations for a session snapshot.

        Raises:
            MalformedInputError: If the snapshot itself is invalid.
        """
        if not isinstance(session, Session):
            raise MalformedInputError("Expected a Session snapshot")

        assessment = classify(session.balance)

        terminal_error = self._check_terminal(session)
        if terminal_error:
            blocked = ValidationResult.blocked(terminal_error)
            return OperationValidations(
                pause=blocked, resume=blocked, stop=blocked, balance=assessment
            )

        return OperationValidations(
            pause=self._result(self._check_pause(session, assessment)),
            resume=self._result(self._check_resume(session, assessment)),
            stop=ValidationResult.allowed(),
            balance=assessment,
        )

    def validate_operation(self, session: Session, operation: OperationType) -> ValidationResult:
        """Validate a single operation."""
        try:
            operation = OperationType(operation)
        except ValueError as e:
            raise MalformedInputError(
                f"Unknown operation: {operation}",
                details={"operation": str(operation)},
            ) from e
        return self.validate(session)[operation]

    @staticmethod
    def _result(error: Optional[OperationError]) -> ValidationResult:
        if error:
            return ValidationResult.blocked(error)
        return ValidationResult.allowed()

    def _check_terminal(self, session: Session) -> Optional[OperationError]:
        if session.terminal:
            return OperationError(
                kind=OperationErrorKind.SESSION_TERMINAL,
                message=f"Session is {session.status.value}; no further operations are possible",
                details={"currentStatus": session.status.value},
            )
        return None

    def _check_pause(
        self, session: Session, assessment: BalanceAssessment
    ) -> Optional[OperationError]:
        if session.paused:
            return OperationError(
                kind=OperationErrorKind.ALREADY_PAUSED,
                message="Session is already paused",
                details={"currentStatus": session.status.value},
            )

        if assessment.status == BalanceStatus.CRITICAL:
            return self._insufficient_balance(
                OperationErrorKind.INSUFFICIENT_BALANCE_FOR_PAUSE,
                OperationType.PAUSE,
                assessment,
                MIN_TRADE_SOL,
            )

        return None

    def _check_resume(
        self, session: Session, assessment: BalanceAssessment
    ) -> Optional[OperationError]:
        if not session.paused:
            return OperationError(
                kind=OperationErrorKind.SESSION_NOT_PAUSED,
                message=f"Cannot resume: session is {session.status.value}, not paused",
                details={"currentStatus": session.status.value, "requiredStatus": "paused"},
            )

        # Resuming restarts trading, which needs trade capital plus fee reserve
        if assessment.status != BalanceStatus.GOOD:
            return self._insufficient_balance(
                OperationErrorKind.INSUFFICIENT_BALANCE_FOR_RESUME,
                OperationType.RESUME,
                assessment,
                MIN_REQUIRED_SOL,
            )

        return None

    @staticmethod
    def _insufficient_balance(
        kind: OperationErrorKind,
        operation: OperationType,
        assessment: BalanceAssessment,
        required: Decimal,
    ) -> OperationError:
        current = assessment.balance
        shortfall = required - current
        return OperationError(
            kind=kind,
            message=(
                f"Insufficient balance for {operation.value}: {current:.6f} SOL available, "
                f"{required:.6f} SOL required (shortfall: {shortfall:.6f} SOL)"
            ),
            details={
                "currentBalance": float(current),
                "requiredBalance": float(required),
                "shortfall": float(shortfall),
                "action": operation.value,
                "balanceStatus": assessment.status.value,
            },
        )
