"""
Recovery service wiring.

Builds the recovery aggregator, sweep orchestrator and stranded wallet
monitor from settings, backed by the upstream session manager.
"""

from typing import Optional

from ..config import settings
from ..core.recovery import (
    ExponentialBackoffStrategy,
    RecoveryStatusAggregator,
    RetryConfig,
    SweepOrchestrator,
)
from ..providers.upstream import get_upstream_client
from .stranded_monitor import StrandedWalletMonitor


def build_retry_strategy() -> ExponentialBackoffStrategy:
    return ExponentialBackoffStrategy(
        RetryConfig(
            max_attempts=settings.sweep_max_attempts,
            initial_delay_seconds=settings.sweep_retry_initial_delay_seconds,
            max_delay_seconds=settings.sweep_retry_max_delay_seconds,
        )
    )


# Singleton instances
_aggregator: Optional[RecoveryStatusAggregator] = None
_orchestrator: Optional[SweepOrchestrator] = None
_monitor: Optional[StrandedWalletMonitor] = None


def get_recovery_aggregator() -> RecoveryStatusAggregator:
    """Get the singleton recovery status aggregator."""
    global _aggregator
    if _aggregator is None:
        client = get_upstream_client()
        _aggregator = RecoveryStatusAggregator(
            client,
            balance_source=client if settings.refresh_live_balances else None,
            dust_threshold=settings.recovery_dust_threshold_sol,
        )
    return _aggregator


def get_sweep_orchestrator() -> SweepOrchestrator:
    """Get the singleton sweep orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        client = get_upstream_client()
        _orchestrator = SweepOrchestrator(
            client,
            client,
            balance_source=client if settings.refresh_live_balances else None,
            aggregator=get_recovery_aggregator(),
            retry_strategy=build_retry_strategy(),
            dust_threshold=settings.recovery_dust_threshold_sol,
            max_concurrency=settings.sweep_max_concurrency,
            settle_delay_seconds=settings.sweep_settle_delay_seconds,
        )
    return _orchestrator


def get_stranded_monitor() -> StrandedWalletMonitor:
    """Get the singleton stranded wallet monitor."""
    global _monitor
    if _monitor is None:
        _monitor = StrandedWalletMonitor(
            get_upstream_client(),
            get_sweep_orchestrator(),
            interval_seconds=settings.stranded_monitor_interval_seconds,
            min_age_seconds=settings.stranded_wallet_min_age_seconds,
        )
    return _monitor
