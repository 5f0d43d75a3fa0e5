"""
Sweep Orchestrator

Moves stranded funds from a session's ephemeral wallets back to its vault.

Each invocation plans the set of wallets that need recovery, re-checks
every wallet immediately before submitting its transfer, and reports one
SweepResult per attempted wallet in planning order. A failed wallet never
aborts the batch. Re-running a sweep on a recovered session is a no-op.

After a settle delay, wallets reported swept are checked against live
balances; one still holding more than dust is recorded as a failed attempt
and becomes eligible for the next sweep.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from functools import partial
from typing import Awaitable, Callable, List, Optional, Set

import structlog

from ..errors import (
    BackendUnavailableError,
    MalformedInputError,
    SessionGuardError,
)
from ..ports import BalanceSource, TransferBackend, WalletLedger
from .aggregator import RecoveryStatusAggregator
from .models import (
    DEFAULT_DUST_THRESHOLD_SOL,
    EphemeralWallet,
    RecoveryStatus,
    SweepResult,
    SweepResults,
    validate_address,
    validate_session_id,
)
from .strategies import ExponentialBackoffStrategy, RetryExhaustedError

logger = structlog.stdlib.get_logger(__name__)

SettleListener = Callable[[RecoveryStatus], Awaitable[None]]

SWEEP_IN_PROGRESS = "Sweep already in progress for this session"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SweepOrchestrator:
    """
    Executes recovery sweeps for a session.

    Usage:
        orchestrator = SweepOrchestrator(ledger, transfers, aggregator=aggregator)
        results = await orchestrator.sweep("session-123")
        if results.error:
            ...  # the sweep could not run at all
        elif results.summary.total == 0:
            ...  # nothing was stranded

    Transfers for different wallets run concurrently up to max_concurrency.
    A second sweep of a session that is already being swept in this process
    is rejected; the transfer backend guards against duplicates across
    processes.
    """

    def __init__(
        self,
        ledger: WalletLedger,
        transfer_backend: TransferBackend,
        balance_source: Optional[BalanceSource] = None,
        aggregator: Optional[RecoveryStatusAggregator] = None,
        retry_strategy: Optional[ExponentialBackoffStrategy] = None,
        dust_threshold: Decimal = DEFAULT_DUST_THRESHOLD_SOL,
        max_concurrency: int = 4,
        settle_delay_seconds: Optional[float] = 2.0,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.ledger = ledger
        self.transfer_backend = transfer_backend
        self.balance_source = balance_source
        self.aggregator = aggregator
        self.retry_strategy = retry_strategy or ExponentialBackoffStrategy()
        self.dust_threshold = dust_threshold
        self.max_concurrency = max_concurrency
        self.settle_delay_seconds = settle_delay_seconds

        self._active_sessions: Set[str] = set()
        self._settle_tasks: Set[asyncio.Task] = set()
        self._settle_listeners: List[SettleListener] = []

    def add_settle_listener(self, listener: SettleListener) -> None:
        """Register a callback for the post-sweep status refresh."""
        self._settle_listeners.append(listener)

    def is_sweeping(self, session_id: str) -> bool:
        return session_id in self._active_sessions

    async def sweep(self, session_id: str) -> SweepResults:
        """
        Sweep every wallet of a session that needs recovery.

        Raises:
            MalformedInputError: Invalid session ID
            SessionNotFoundError: Unknown session

        Backend outages are returned as SweepResults with `error` set.
        """
        validate_session_id(session_id)

        if session_id in self._active_sessions:
            logger.warning("sweep_rejected", session_id=session_id, reason="in_progress")
            return SweepResults.failure(SWEEP_IN_PROGRESS, session_id=session_id)

        self._active_sessions.add(session_id)
        try:
            return await self._run(session_id)
        finally:
            self._active_sessions.discard(session_id)

    async def _run(self, session_id: str) -> SweepResults:
        started_at = _utcnow()

        try:
            vault_address, wallets = await self.ledger.get_wallet_set(session_id)
            vault_address = validate_address(vault_address)
        except BackendUnavailableError as e:
            logger.error("sweep_unavailable", session_id=session_id, error=e.message)
            return SweepResults.failure(
                f"Could not load wallets for sweep: {e.message}", session_id=session_id
            )
        except MalformedInputError as e:
            logger.error("sweep_unavailable", session_id=session_id, error=e.message)
            return SweepResults.failure(f"Invalid vault address: {e.message}", session_id=session_id)

        plan = [w for w in wallets if w.needs_recovery(self.dust_threshold)]
        logger.info(
            "sweep_started",
            session_id=session_id,
            vault_address=vault_address,
            wallets=len(wallets),
            planned=len(plan),
            stranded_sol=float(sum((w.balance for w in plan), Decimal("0"))),
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)
        # Waits for every wallet task, so the session stays locked until all transfers finish
        outcomes = await asyncio.gather(
            *(self._sweep_wallet(session_id, vault_address, w, semaphore) for w in plan),
            return_exceptions=True,
        )
        results: List[SweepResult] = []
        for planned, outcome in zip(plan, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(
                    "sweep_wallet_failed",
                    session_id=session_id,
                    address=planned.address,
                    error=str(outcome),
                    exc_info=outcome,
                )
                outcome = SweepResult(
                    address=planned.address,
                    success=False,
                    error=f"Unexpected error during sweep: {outcome}",
                    attempts=0,
                )
            if outcome is not None:
                results.append(outcome)

        sweep_results = SweepResults.from_results(
            session_id, results, started_at=started_at, completed_at=_utcnow()
        )
        logger.info(
            "sweep_completed",
            session_id=session_id,
            success=sweep_results.success,
            **sweep_results.summary.to_dict(),
        )

        if results:
            self._schedule_settle_refresh(session_id, [r.address for r in results if r.success])
        return sweep_results

    async def _sweep_wallet(
        self,
        session_id: str,
        vault_address: str,
        planned: EphemeralWallet,
        semaphore: asyncio.Semaphore,
    ) -> Optional[SweepResult]:
        address = planned.address
        async with semaphore:
            try:
                wallet = await self._recheck(session_id, address)
            except SessionGuardError as e:
                logger.warning("sweep_wallet_failed", session_id=session_id, address=address, error=e.message)
                return SweepResult(
                    address=address,
                    success=False,
                    error=f"Could not re-check wallet before sweep: {e.message}",
                    attempts=0,
                )

            if wallet is None:
                logger.info("sweep_wallet_skipped", session_id=session_id, address=address)
                return None

            async def transfer() -> Optional[str]:
                return await self.transfer_backend.transfer_to_vault(session_id, address, vault_address)

            async def record_failure(error: Exception, attempt: int) -> None:
                logger.warning(
                    "sweep_attempt_failed",
                    session_id=session_id,
                    address=address,
                    attempt=attempt,
                    error=str(error),
                )
                await self._record(
                    session_id,
                    address,
                    partial(self.ledger.record_sweep_failure, session_id, address, str(error), _utcnow()),
                )

            try:
                signature, attempts = await self.retry_strategy.execute(transfer, on_failure=record_failure)
            except RetryExhaustedError as e:
                logger.warning(
                    "sweep_wallet_failed",
                    session_id=session_id,
                    address=address,
                    attempts=e.attempts,
                    error=str(e.last_error),
                )
                return SweepResult(
                    address=address,
                    success=False,
                    error=str(e.last_error),
                    attempts=e.attempts,
                )

            await self._record(
                session_id, address, partial(self.ledger.record_sweep_success, session_id, address, _utcnow())
            )

            logger.info(
                "sweep_wallet_succeeded",
                session_id=session_id,
                address=address,
                signature=signature,
                attempts=attempts,
                amount_sol=float(wallet.balance),
            )
            return SweepResult(
                address=address,
                success=True,
                message="Swept successfully",
                signature=signature,
                attempts=attempts,
            )

    @staticmethod
    async def _record(session_id: str, address: str, write: Callable[[], Awaitable[None]]) -> None:
        """Write a sweep attempt to the ledger; a failed write never fails the sweep."""
        try:
            await write()
        except SessionGuardError as e:
            logger.error("sweep_record_failed", session_id=session_id, address=address, error=e.message)
        except Exception:
            logger.exception("sweep_record_failed", session_id=session_id, address=address)

    async def _recheck(self, session_id: str, address: str) -> Optional[EphemeralWallet]:
        """Re-read a wallet at submission time; None if it no longer needs recovery."""
        wallet = await self.ledger.get_wallet(session_id, address)
        if wallet is None:
            return None

        if self.balance_source is not None:
            try:
                wallet = wallet.with_balance(await self.balance_source.get_balance(address))
            except SessionGuardError as e:
                logger.warning("balance_check_failed", address=address, error=e.message)

        return wallet if wallet.needs_recovery(self.dust_threshold) else None

    def _schedule_settle_refresh(self, session_id: str, swept: List[str]) -> None:
        if self.settle_delay_seconds is None:
            return
        to_verify = swept if self.balance_source is not None else []
        if self.aggregator is None and not to_verify:
            return
        task = asyncio.create_task(self._refresh_after_settle(session_id, to_verify))
        self._settle_tasks.add(task)
        task.add_done_callback(self._settle_tasks.discard)

    async def _refresh_after_settle(self, session_id: str, swept: List[str]) -> None:
        await asyncio.sleep(self.settle_delay_seconds)
        for address in swept:
            await self._verify_swept(session_id, address)

        if self.aggregator is None:
            return
        try:
            status = await self.aggregator.get_status(session_id)
        except SessionGuardError as e:
            logger.warning("sweep_settle_refresh_failed", session_id=session_id, error=e.message)
            return

        logger.info(
            "sweep_settled",
            session_id=session_id,
            needs_recovery=status.summary.needs_recovery,
            stranded_sol=float(status.summary.total_stranded_balance),
        )
        for listener in list(self._settle_listeners):
            try:
                await listener(status)
            except Exception:
                logger.exception("sweep_settle_listener_failed", session_id=session_id)

    async def _verify_swept(self, session_id: str, address: str) -> None:
        """Reopen a wallet the backend reported swept but that still holds more than dust."""
        try:
            remaining = await self.balance_source.get_balance(address)
        except SessionGuardError as e:
            logger.warning("sweep_verify_failed", session_id=session_id, address=address, error=e.message)
            return
        except Exception:
            logger.exception("sweep_verify_failed", session_id=session_id, address=address)
            return

        if remaining <= self.dust_threshold:
            return

        error = f"Ephemeral wallet still has {remaining} SOL after sweep"
        logger.warning(
            "sweep_unverified",
            session_id=session_id,
            address=address,
            remaining_sol=float(remaining),
        )
        await self._record(
            session_id,
            address,
            partial(
                self.ledger.record_sweep_failure, session_id, address, error, _utcnow(), balance=remaining
            ),
        )

    async def wait_settled(self) -> None:
        """Wait for pending post-sweep refreshes."""
        if self._settle_tasks:
            await asyncio.gather(*list(self._settle_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel pending post-sweep refreshes."""
        for task in list(self._settle_tasks):
            task.cancel()
        await self.wait_settled()
