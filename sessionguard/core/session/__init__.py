"""
Session Operation Validation

Balance classification, pause/resume/stop validation and the refresh
controller that keeps validations in step with session state.
"""

from .balance import FEE_RESERVE_SOL, MIN_REQUIRED_SOL, MIN_TRADE_SOL, SAFETY_BUFFER_SOL, classify
from .models import (
    BalanceAssessment,
    BalanceStatus,
    OperationType,
    OperationValidations,
    Session,
    SessionStatus,
    ValidationResult,
    to_balance,
)
from .refresh import RefreshTrigger, ValidationRefreshController, detect_triggers
from .validator import OperationValidator

__all__ = [
    # Balance
    "MIN_TRADE_SOL",
    "FEE_RESERVE_SOL",
    "SAFETY_BUFFER_SOL",
    "MIN_REQUIRED_SOL",
    "classify",
    "to_balance",
    # Models
    "BalanceAssessment",
    "BalanceStatus",
    "OperationType",
    "OperationValidations",
    "Session",
    "SessionStatus",
    "ValidationResult",
    # Validation
    "OperationValidator",
    "RefreshTrigger",
    "ValidationRefreshController",
    "detect_triggers",
]
