"""
Tests for the Recovery Status Aggregator
"""

from decimal import Decimal

import pytest

from fakes import (
    VAULT,
    WALLET_A,
    WALLET_B,
    WALLET_C,
    FakeBalanceSource,
    wallet,
)
from sessionguard.core.errors import (
    BackendUnavailableError,
    MalformedInputError,
    SessionNotFoundError,
)
from sessionguard.core.recovery import (
    BALANCE_CHECK_FAILED,
    RecoveryStatusAggregator,
    WalletStatus,
)


class TestGetStatus:
    @pytest.mark.asyncio
    async def test_rollup_matches_wallets(self, ledger):
        ledger.add_session(
            "session-1",
            [
                wallet(WALLET_A, "0.05"),
                wallet(WALLET_B, "0", status=WalletStatus.SWEPT),
                wallet(WALLET_C, "0.2"),
            ],
        )

        status = await RecoveryStatusAggregator(ledger).get_status("session-1")

        assert status.vault_address == VAULT
        assert status.summary.total == len(status.ephemeral_wallets) == 3
        assert status.summary.total_stranded_balance == sum(
            w.balance for w in status.ephemeral_wallets if w.needs_recovery()
        )
        assert status.summary.total_stranded_balance == Decimal("0.25")

    @pytest.mark.asyncio
    async def test_preserves_ledger_order(self, ledger):
        ledger.add_session("session-1", [wallet(WALLET_C, "1"), wallet(WALLET_A, "1")])
        status = await RecoveryStatusAggregator(ledger).get_status("session-1")
        assert [w.address for w in status.ephemeral_wallets] == [WALLET_C, WALLET_A]

    @pytest.mark.asyncio
    async def test_reads_fresh_each_call(self, ledger):
        ledger.add_session("session-1", [wallet(WALLET_A, "0.05")])
        aggregator = RecoveryStatusAggregator(ledger)

        first = await aggregator.get_status("session-1")
        ledger.wallets["session-1"] = [wallet(WALLET_A, "0", status=WalletStatus.SWEPT)]
        second = await aggregator.get_status("session-1")

        assert first.summary.needs_recovery == 1
        assert second.summary.needs_recovery == 0

    @pytest.mark.asyncio
    async def test_custom_dust_threshold(self, ledger):
        ledger.add_session("session-1", [wallet(WALLET_A, "0.004")])
        aggregator = RecoveryStatusAggregator(ledger, dust_threshold=Decimal("0.005"))

        status = await aggregator.get_status("session-1")

        assert status.summary.needs_recovery == 0
        assert status.to_dict()["ephemeralWallets"][0]["needsRecovery"] is False

    @pytest.mark.asyncio
    async def test_not_found(self, ledger):
        with pytest.raises(SessionNotFoundError):
            await RecoveryStatusAggregator(ledger).get_status("missing")

    @pytest.mark.asyncio
    async def test_unavailable(self, ledger):
        ledger.add_session("session-1", [])
        ledger.unavailable = True
        with pytest.raises(BackendUnavailableError):
            await RecoveryStatusAggregator(ledger).get_status("session-1")

    @pytest.mark.asyncio
    async def test_malformed_session_id(self, ledger):
        with pytest.raises(MalformedInputError):
            await RecoveryStatusAggregator(ledger).get_status("bad id!")


class TestLiveBalances:
    @pytest.mark.asyncio
    async def test_live_balance_replaces_ledger_balance(self, ledger):
        ledger.add_session("session-1", [wallet(WALLET_A, "0.05"), wallet(WALLET_B, "0")])
        balances = FakeBalanceSource({WALLET_A: Decimal("0"), WALLET_B: Decimal("0.3")})

        status = await RecoveryStatusAggregator(ledger, balance_source=balances).get_status("session-1")

        assert [w.balance for w in status.ephemeral_wallets] == [Decimal("0"), Decimal("0.3")]
        assert status.summary.total_stranded_balance == Decimal("0.3")

    @pytest.mark.asyncio
    async def test_failed_lookup_keeps_ledger_balance(self, ledger):
        ledger.add_session("session-1", [wallet(WALLET_A, "0.05"), wallet(WALLET_B, "0.1")])
        balances = FakeBalanceSource(
            {WALLET_A: BackendUnavailableError("rpc down"), WALLET_B: Decimal("0.1")}
        )

        status = await RecoveryStatusAggregator(ledger, balance_source=balances).get_status("session-1")

        first, second = status.ephemeral_wallets
        assert first.balance == Decimal("0.05")
        assert first.balance_error == BALANCE_CHECK_FAILED
        assert second.balance_error is None
        assert status.summary.needs_recovery == 2
