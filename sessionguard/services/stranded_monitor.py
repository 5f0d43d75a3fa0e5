"""
Stranded wallet monitor.

Background loop that finds sessions whose ephemeral wallets still hold funds
some time after creation and sweeps them back to the vault.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import structlog

from ..core.errors import SessionGuardError
from ..core.ports import WalletLedger
from ..core.recovery import SweepOrchestrator

logger = structlog.stdlib.get_logger(__name__)


@dataclass
class MonitorTick:
    """Outcome of one monitor pass."""

    checked_at: datetime
    sessions: List[str] = field(default_factory=list)
    swept: int = 0
    failed: int = 0
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checkedAt": self.checked_at.isoformat(),
            "sessions": list(self.sessions),
            "swept": self.swept,
            "failed": self.failed,
            "errors": dict(self.errors),
        }


class StrandedWalletMonitor:
    """Periodically sweeps sessions with stranded ephemeral wallets."""

    def __init__(
        self,
        ledger: WalletLedger,
        orchestrator: SweepOrchestrator,
        interval_seconds: float = 300,
        min_age_seconds: float = 300,
        session_gap_seconds: float = 2.0,
    ) -> None:
        self.ledger = ledger
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self.min_age = timedelta(seconds=min_age_seconds)
        self.session_gap_seconds = session_gap_seconds
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.last_tick: Optional[MonitorTick] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> MonitorTick:
        """Sweep every session the ledger reports as holding stranded wallets."""
        now = datetime.now(timezone.utc)
        tick = MonitorTick(checked_at=now)

        try:
            tick.sessions = await self.ledger.list_sessions_with_unswept_wallets(now - self.min_age)
        except SessionGuardError as e:
            logger.warning("stranded_monitor_lookup_failed", error=e.message)
            tick.errors["*"] = e.message
            self.last_tick = tick
            return tick

        for index, session_id in enumerate(tick.sessions):
            if index and self.session_gap_seconds:
                # Space out sessions so the transfer backend is not hammered
                await asyncio.sleep(self.session_gap_seconds)
            try:
                results = await self.orchestrator.sweep(session_id)
            except SessionGuardError as e:
                tick.errors[session_id] = e.message
                continue
            if results.error:
                tick.errors[session_id] = results.error
                continue
            tick.swept += results.summary.succeeded
            tick.failed += results.summary.failed

        logger.info(
            "stranded_monitor_tick",
            sessions=len(tick.sessions),
            swept=tick.swept,
            failed=tick.failed,
            errors=len(tick.errors),
        )
        self.last_tick = tick
        return tick

    # ---------------------------
    # Lifecycle
    # ---------------------------
    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name="stranded-wallet-monitor")
        logger.info("stranded_monitor_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("stranded_monitor_stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("stranded_monitor_crashed")
            await asyncio.sleep(self.interval_seconds)
