"""
Fund Recovery Module

Recovery status aggregation and sweep orchestration for ephemeral
session wallets.
"""

from .aggregator import BALANCE_CHECK_FAILED, RecoveryStatusAggregator
from .models import (
    DEFAULT_DUST_THRESHOLD_SOL,
    EphemeralWallet,
    RecoveryStatus,
    RecoverySummary,
    SweepResult,
    SweepResults,
    SweepSummary,
    WalletSet,
    WalletStatus,
    validate_address,
    validate_session_id,
)
from .orchestrator import SWEEP_IN_PROGRESS, SweepOrchestrator
from .strategies import ExponentialBackoffStrategy, RetryConfig, RetryExhaustedError

__all__ = [
    # Models
    "DEFAULT_DUST_THRESHOLD_SOL",
    "EphemeralWallet",
    "RecoveryStatus",
    "RecoverySummary",
    "SweepResult",
    "SweepResults",
    "SweepSummary",
    "WalletSet",
    "WalletStatus",
    "validate_address",
    "validate_session_id",
    # Aggregation
    "BALANCE_CHECK_FAILED",
    "RecoveryStatusAggregator",
    # Sweeping
    "SWEEP_IN_PROGRESS",
    "SweepOrchestrator",
    # Strategies
    "ExponentialBackoffStrategy",
    "RetryConfig",
    "RetryExhaustedError",
]
