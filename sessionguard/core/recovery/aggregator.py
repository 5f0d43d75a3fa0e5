"""
Recovery Status Aggregator

Builds a RecoveryStatus snapshot from the live wallet set. Every call
re-reads the ledger; nothing is cached between invocations.
"""

import asyncio
from dataclasses import replace
from decimal import Decimal
from typing import List, Optional

import structlog

from ..errors import RecoverableError, UnrecoverableError
from ..ports import BalanceSource, WalletLedger
from .models import (
    DEFAULT_DUST_THRESHOLD_SOL,
    EphemeralWallet,
    RecoveryStatus,
    validate_session_id,
)

logger = structlog.stdlib.get_logger(__name__)

BALANCE_CHECK_FAILED = "Failed to check balance"


class RecoveryStatusAggregator:
    """Read-and-aggregate view over a session's ephemeral wallets."""

    def __init__(
        self,
        ledger: WalletLedger,
        balance_source: Optional[BalanceSource] = None,
        dust_threshold: Decimal = DEFAULT_DUST_THRESHOLD_SOL,
    ) -> None:
        self.ledger = ledger
        self.balance_source = balance_source
        self.dust_threshold = dust_threshold

    async def get_status(self, session_id: str) -> RecoveryStatus:
        """
        Get the recovery status of a session.

        Raises:
            MalformedInputError: Invalid session ID
            SessionNotFoundError: Unknown session
            BackendUnavailableError: Ledger could not be reached
        """
        validate_session_id(session_id)

        vault_address, wallets = await self.ledger.get_wallet_set(session_id)

        if self.balance_source is not None and wallets:
            wallets = await self._refresh_balances(wallets)

        status = RecoveryStatus.build(
            session_id=session_id,
            vault_address=vault_address,
            wallets=wallets,
            dust_threshold=self.dust_threshold,
        )
        logger.debug(
            "recovery_status_built",
            session_id=session_id,
            total=status.summary.total,
            needs_recovery=status.summary.needs_recovery,
            stranded_sol=float(status.summary.total_stranded_balance),
        )
        return status

    async def _refresh_balances(self, wallets: List[EphemeralWallet]) -> List[EphemeralWallet]:
        return list(await asyncio.gather(*(self._refresh_balance(w) for w in wallets)))

    async def _refresh_balance(self, wallet: EphemeralWallet) -> EphemeralWallet:
        try:
            balance = await self.balance_source.get_balance(wallet.address)
        except (RecoverableError, UnrecoverableError) as e:
            # Keep the last known ledger balance so stranded funds stay visible
            logger.warning("balance_check_failed", address=wallet.address, error=str(e))
            return replace(wallet, balance_error=BALANCE_CHECK_FAILED)
        return wallet.with_balance(balance)
