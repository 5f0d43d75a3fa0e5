"""Balance sufficiency classification for session wallets."""

from decimal import Decimal
from typing import Any

from .models import BalanceAssessment, BalanceStatus, to_balance

MIN_TRADE_SOL = Decimal("0.001")
FEE_RESERVE_SOL = Decimal("0.00204")
SAFETY_BUFFER_SOL = Decimal("0.001")
MIN_REQUIRED_SOL = MIN_TRADE_SOL + FEE_RESERVE_SOL + SAFETY_BUFFER_SOL  # trading + fees + buffer


def classify(balance: Any) -> BalanceAssessment:
    """Classify a SOL balance as good, low or critical.

    Raises:
        MalformedInputError: If the balance is negative or not a finite number.
    """
    amount = to_balance(balance)

    if amount >= MIN_REQUIRED_SOL:
        return BalanceAssessment(BalanceStatus.GOOD, "Sufficient for all operations", amount)
    if amount >= MIN_TRADE_SOL:
        return BalanceAssessment(BalanceStatus.LOW, "Can pause, but cannot resume", amount)
    return BalanceAssessment(BalanceStatus.CRITICAL, "Cannot pause or resume", amount)
