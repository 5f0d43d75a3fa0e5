"""
Tests for balance classification.
"""

from decimal import Decimal

import pytest

from sessionguard.core.errors import MalformedInputError
from sessionguard.core.session import (
    MIN_REQUIRED_SOL,
    MIN_TRADE_SOL,
    BalanceStatus,
    classify,
    to_balance,
)


class TestThresholds:
    def test_min_required_is_trade_plus_fees_plus_buffer(self):
        assert MIN_TRADE_SOL == Decimal("0.001")
        assert MIN_REQUIRED_SOL == Decimal("0.00404")


class TestClassify:
    @pytest.mark.parametrize(
        "balance, expected",
        [
            ("1.5", BalanceStatus.GOOD),
            ("0.00404", BalanceStatus.GOOD),
            ("0.00403", BalanceStatus.LOW),
            ("0.001", BalanceStatus.LOW),
            ("0.000999", BalanceStatus.CRITICAL),
            ("0", BalanceStatus.CRITICAL),
        ],
    )
    def test_boundaries(self, balance, expected):
        assert classify(Decimal(balance)).status == expected

    def test_messages(self):
        assert classify(Decimal("1")).message == "Sufficient for all operations"
        assert classify(Decimal("0.002")).message == "Can pause, but cannot resume"
        assert classify(Decimal("0.0001")).message == "Cannot pause or resume"

    def test_accepts_floats_and_strings(self):
        assert classify(0.005).status == BalanceStatus.GOOD
        assert classify("0.002").status == BalanceStatus.LOW

    def test_assessment_keeps_balance(self):
        assessment = classify(Decimal("0.002"))
        assert assessment.balance == Decimal("0.002")
        assert assessment.to_dict() == {
            "status": "low",
            "message": "Can pause, but cannot resume",
            "balance": 0.002,
        }

    @pytest.mark.parametrize("bad", [-0.0001, "-1", "nan", "inf", "abc", None, True])
    def test_rejects_invalid_balances(self, bad):
        with pytest.raises(MalformedInputError):
            classify(bad)


class TestToBalance:
    def test_float_goes_through_str(self):
        assert to_balance(0.1) == Decimal("0.1")

    def test_decimal_passthrough(self):
        value = Decimal("0.00404")
        assert to_balance(value) is value
