"""In-memory session manager doubles shared across the test suite."""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sessionguard.core.errors import (
    BackendUnavailableError,
    SessionNotFoundError,
    TransferFailedError,
)
from sessionguard.core.recovery import EphemeralWallet, WalletSet, WalletStatus
from sessionguard.core.session import Session, SessionStatus

VAULT = "Vau1tAddressXXXXXXXXXXXXXXXXXXXXXXXXXXXX1"
WALLET_A = "EphA1111111111111111111111111111111111111"
WALLET_B = "EphB2222222222222222222222222222222222222"
WALLET_C = "EphC3333333333333333333333333333333333333"
WALLET_D = "EphD4444444444444444444444444444444444444"


def wallet(address: str, balance: str, status: WalletStatus = WalletStatus.FUNDED, **kwargs) -> EphemeralWallet:
    return EphemeralWallet(address=address, status=status, balance=Decimal(balance), **kwargs)


def session(
    balance: str = "0.01",
    status: SessionStatus = SessionStatus.ACTIVE,
    is_paused: bool = False,
    session_id: str = "session-1",
) -> Session:
    return Session(session_id=session_id, status=status, balance=Decimal(balance), is_paused=is_paused)


class FakeLedger:
    """WalletLedger keeping wallets per session in creation order."""

    def __init__(self) -> None:
        self.vaults: Dict[str, str] = {}
        self.wallets: Dict[str, List[EphemeralWallet]] = {}
        self.attempts: List[tuple] = []
        self.stranded: List[str] = []
        self.unavailable = False
        self.stranded_queries: List[datetime] = []

    def add_session(self, session_id: str, wallets: List[EphemeralWallet], vault: str = VAULT) -> None:
        self.vaults[session_id] = vault
        self.wallets[session_id] = list(wallets)

    def _check(self, session_id: str) -> None:
        if self.unavailable:
            raise BackendUnavailableError("ledger down")
        if session_id not in self.vaults:
            raise SessionNotFoundError(session_id)

    async def get_wallet_set(self, session_id: str) -> WalletSet:
        self._check(session_id)
        return WalletSet(self.vaults[session_id], list(self.wallets[session_id]))

    async def get_wallet(self, session_id: str, address: str) -> Optional[EphemeralWallet]:
        self._check(session_id)
        for w in self.wallets[session_id]:
            if w.address == address:
                return w
        return None

    def _update(self, session_id: str, address: str, **changes) -> None:
        self.wallets[session_id] = [
            replace(w, **changes) if w.address == address else w for w in self.wallets[session_id]
        ]

    def _current(self, session_id: str, address: str) -> EphemeralWallet:
        return next(w for w in self.wallets[session_id] if w.address == address)

    async def record_sweep_success(self, session_id: str, address: str, attempted_at: datetime) -> None:
        self.attempts.append((session_id, address, True, None))
        current = self._current(session_id, address)
        self._update(
            session_id,
            address,
            status=WalletStatus.SWEPT,
            balance=Decimal("0"),
            sweep_attempts=current.sweep_attempts + 1,
            last_sweep_attempt=attempted_at,
            sweep_error=None,
        )

    async def record_sweep_failure(
        self,
        session_id: str,
        address: str,
        error: str,
        attempted_at: datetime,
        balance: Optional[Decimal] = None,
    ) -> None:
        self.attempts.append((session_id, address, False, error))
        current = self._current(session_id, address)
        changes = {}
        if current.status == WalletStatus.SWEPT:
            changes["status"] = WalletStatus.FUNDED
        if balance is not None:
            changes["balance"] = balance
        self._update(
            session_id,
            address,
            sweep_attempts=current.sweep_attempts + 1,
            last_sweep_attempt=attempted_at,
            sweep_error=error,
            **changes,
        )

    async def list_sessions_with_unswept_wallets(self, older_than: datetime) -> List[str]:
        if self.unavailable:
            raise BackendUnavailableError("ledger down")
        self.stranded_queries.append(older_than)
        return list(self.stranded)


class FakeTransfer:
    """TransferBackend that fails for configured addresses."""

    def __init__(self) -> None:
        self.failures: Dict[str, List[Exception]] = {}
        self.calls: List[tuple] = []
        self.gate = None

    def fail(self, address: str, *errors: Optional[Exception]) -> None:
        self.failures[address] = list(errors) or [TransferFailedError("Transaction failed")]

    async def transfer_to_vault(self, session_id: str, address: str, vault_address: str) -> Optional[str]:
        self.calls.append((session_id, address, vault_address))
        if self.gate is not None:
            await self.gate.wait()
        pending = self.failures.get(address)
        if pending:
            # The last entry repeats; None means the transfer lands
            error = pending.pop(0) if len(pending) > 1 else pending[0]
            if error is not None:
                raise error
        return f"sig-{address[:4]}"


class FakeBalanceSource:
    """BalanceSource with per-address balances or errors."""

    def __init__(self, balances: Optional[Dict[str, Decimal]] = None) -> None:
        self.balances: Dict[str, object] = dict(balances or {})

    async def get_balance(self, address: str) -> Decimal:
        value = self.balances[address]
        if isinstance(value, Exception):
            raise value
        return value


class FakeSessionControl:
    """SessionControl over a dict of session snapshots."""

    def __init__(self, *sessions: Session) -> None:
        self.sessions: Dict[str, Session] = {s.session_id: s for s in sessions}
        self.calls: List[tuple] = []
        self.errors: Dict[str, Exception] = {}

    async def get_session(self, session_id: str) -> Session:
        if session_id not in self.sessions:
            raise SessionNotFoundError(session_id)
        return self.sessions[session_id]

    async def _control(self, action: str, session_id: str, status: SessionStatus, paused: bool) -> None:
        self.calls.append((action, session_id))
        if action in self.errors:
            raise self.errors[action]
        current = self.sessions[session_id]
        self.sessions[session_id] = replace(current, status=status, is_paused=paused)

    async def pause(self, session_id: str) -> None:
        await self._control("pause", session_id, SessionStatus.PAUSED, True)

    async def resume(self, session_id: str) -> None:
        await self._control("resume", session_id, SessionStatus.ACTIVE, False)

    async def stop(self, session_id: str) -> None:
        await self._control("stop", session_id, SessionStatus.STOPPED, False)
