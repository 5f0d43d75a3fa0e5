"""
Recovery Models

Ephemeral wallet records, the recovery status rollup and sweep results.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from ..errors import MalformedInputError
from ..session.models import to_balance

DEFAULT_DUST_THRESHOLD_SOL = Decimal("0.001")

_BASE58_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def validate_address(address: str) -> str:
    if not isinstance(address, str) or not _BASE58_ADDRESS.match(address):
        raise MalformedInputError("Invalid wallet address", details={"address": str(address)})
    return address


def validate_session_id(session_id: str) -> str:
    if not isinstance(session_id, str) or not _SESSION_ID.match(session_id):
        raise MalformedInputError("Invalid session ID", details={"sessionId": str(session_id)})
    return session_id


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class WalletStatus(str, Enum):
    IDLE = "idle"
    FUNDED = "funded"
    SWEPT = "swept"


@dataclass
class EphemeralWallet:
    """Session-scoped trading wallet; kept as an audit record after sweeping."""

    address: str
    status: WalletStatus
    balance: Decimal
    sweep_attempts: int = 0
    last_sweep_attempt: Optional[datetime] = None
    sweep_error: Optional[str] = None
    balance_error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.sweep_attempts < 0:
            raise MalformedInputError(
                "sweepAttempts cannot be negative",
                details={"address": self.address, "sweepAttempts": self.sweep_attempts},
            )

    def needs_recovery(self, dust_threshold: Decimal = DEFAULT_DUST_THRESHOLD_SOL) -> bool:
        return self.balance > dust_threshold and self.status != WalletStatus.SWEPT

    def with_balance(self, balance: Decimal) -> "EphemeralWallet":
        return replace(self, balance=balance, balance_error=None)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EphemeralWallet":
        return cls(
            address=validate_address(data["address"]),
            status=WalletStatus(data.get("status", WalletStatus.IDLE.value)),
            balance=to_balance(data.get("balance") or 0),
            sweep_attempts=int(data.get("sweepAttempts") or 0),
            last_sweep_attempt=_parse_datetime(data.get("lastSweepAttempt")),
            sweep_error=data.get("sweepError"),
        )

    def to_dict(self, dust_threshold: Decimal = DEFAULT_DUST_THRESHOLD_SOL) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "address": self.address,
            "status": self.status.value,
            "balance": float(self.balance),
            "sweepAttempts": self.sweep_attempts,
            "lastSweepAttempt": self.last_sweep_attempt.isoformat() if self.last_sweep_attempt else None,
            "sweepError": self.sweep_error,
            "needsRecovery": self.needs_recovery(dust_threshold),
        }
        if self.balance_error:
            data["error"] = self.balance_error
        return data


class WalletSet(NamedTuple):
    """A session's vault address and ephemeral wallets, read together."""

    vault_address: str
    wallets: List[EphemeralWallet]


@dataclass(frozen=True)
class RecoverySummary:
    total: int
    swept: int
    needs_recovery: int
    total_stranded_balance: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "swept": self.swept,
            "needsRecovery": self.needs_recovery,
            "totalStrandedBalance": float(self.total_stranded_balance),
        }


@dataclass(frozen=True)
class RecoveryStatus:
    """Point-in-time rollup of a session's ephemeral wallets."""

    session_id: str
    vault_address: str
    ephemeral_wallets: List[EphemeralWallet]
    summary: RecoverySummary
    dust_threshold: Decimal = DEFAULT_DUST_THRESHOLD_SOL

    @classmethod
    def build(
        cls,
        session_id: str,
        vault_address: str,
        wallets: List[EphemeralWallet],
        dust_threshold: Decimal = DEFAULT_DUST_THRESHOLD_SOL,
    ) -> "RecoveryStatus":
        stranded = [w for w in wallets if w.needs_recovery(dust_threshold)]
        summary = RecoverySummary(
            total=len(wallets),
            swept=sum(1 for w in wallets if w.status == WalletStatus.SWEPT),
            needs_recovery=len(stranded),
            total_stranded_balance=sum((w.balance for w in stranded), Decimal("0")),
        )
        return cls(
            session_id=session_id,
            vault_address=vault_address,
            ephemeral_wallets=list(wallets),
            summary=summary,
            dust_threshold=dust_threshold,
        )

    @property
    def wallets_needing_recovery(self) -> List[EphemeralWallet]:
        return [w for w in self.ephemeral_wallets if w.needs_recovery(self.dust_threshold)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "vaultAddress": self.vault_address,
            "ephemeralWallets": [w.to_dict(self.dust_threshold) for w in self.ephemeral_wallets],
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class SweepResult:
    """Outcome of sweeping one wallet."""

    address: str
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    signature: Optional[str] = None
    attempts: int = 1

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"address": self.address, "success": self.success}
        if self.success:
            data["message"] = self.message
        else:
            data["error"] = self.error
        if self.signature:
            data["signature"] = self.signature
        data["attempts"] = self.attempts
        return data


@dataclass(frozen=True)
class SweepSummary:
    total: int
    succeeded: int
    failed: int

    def to_dict(self) -> Dict[str, int]:
        return {"total": self.total, "succeeded": self.succeeded, "failed": self.failed}


@dataclass(frozen=True)
class SweepResults:
    """
    Outcome of one sweep invocation.

    `error` is set only when the sweep could not run at all; `results` and
    `summary` are then absent. An empty `results` with success=True means
    there were no stranded funds.
    """

    success: bool
    session_id: Optional[str] = None
    summary: Optional[SweepSummary] = None
    results: Optional[List[SweepResult]] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = field(default=None, compare=False)
    completed_at: Optional[datetime] = field(default=None, compare=False)

    @classmethod
    def from_results(
        cls,
        session_id: str,
        results: List[SweepResult],
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> "SweepResults":
        succeeded = sum(1 for r in results if r.success)
        failed = len(results) - succeeded
        return cls(
            success=failed == 0,
            session_id=session_id,
            summary=SweepSummary(total=len(results), succeeded=succeeded, failed=failed),
            results=list(results),
            started_at=started_at,
            completed_at=completed_at,
        )

    @classmethod
    def failure(cls, error: str, session_id: Optional[str] = None) -> "SweepResults":
        return cls(success=False, session_id=session_id, error=error)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.session_id is not None:
            data["sessionId"] = self.session_id
        if self.summary is not None:
            data["summary"] = self.summary.to_dict()
        if self.results is not None:
            data["results"] = [r.to_dict() for r in self.results]
        if self.error is not None:
            data["error"] = self.error
        if self.started_at is not None:
            data["startedAt"] = self.started_at.isoformat()
        if self.completed_at is not None:
            data["completedAt"] = self.completed_at.isoformat()
        return data
