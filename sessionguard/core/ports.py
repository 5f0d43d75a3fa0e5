"""Collaborator interfaces consumed by the session and recovery core.

The session manager owns sessions, wallet records and transfers. The core
reads snapshots through these protocols and triggers mutation only through
them.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional, Protocol

if TYPE_CHECKING:
    from .recovery.models import EphemeralWallet, WalletSet
    from .session.models import Session


class SessionControl(Protocol):
    """Session-control API of the session manager.

    Each method raises UnauthorizedError, SessionNotFoundError,
    PreconditionFailedError or BackendUnavailableError.
    """

    async def get_session(self, session_id: str) -> Session: ...

    async def pause(self, session_id: str) -> None: ...

    async def resume(self, session_id: str) -> None: ...

    async def stop(self, session_id: str) -> None: ...


class WalletLedger(Protocol):
    """Ephemeral wallet records, in creation order."""

    async def get_wallet_set(self, session_id: str) -> WalletSet:
        """Vault address and wallets of a session from a single read."""

    async def get_wallet(self, session_id: str, address: str) -> Optional[EphemeralWallet]: ...

    async def record_sweep_success(
        self, session_id: str, address: str, attempted_at: datetime
    ) -> None: ...

    async def record_sweep_failure(
        self,
        session_id: str,
        address: str,
        error: str,
        attempted_at: datetime,
        balance: Optional[Decimal] = None,
    ) -> None:
        """Record a failed attempt; a wallet recorded as swept goes back to funded.

        `balance`, when given, is the remaining on-chain balance.
        """

    async def list_sessions_with_unswept_wallets(self, older_than: datetime) -> List[str]: ...


class TransferBackend(Protocol):
    """Moves an ephemeral wallet's balance to the vault.

    Raises TransferFailedError, TransferRejectedError, SweepConflictError or
    BackendUnavailableError.
    The backend owns the at-most-once guarantee per wallet.
    """

    async def transfer_to_vault(
        self, session_id: str, address: str, vault_address: str
    ) -> Optional[str]: ...


class BalanceSource(Protocol):
    """Live on-chain balance lookups, in SOL."""

    async def get_balance(self, address: str) -> Decimal: ...
