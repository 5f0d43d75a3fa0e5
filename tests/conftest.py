import pytest

from fakes import FakeLedger, FakeTransfer


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def transfers() -> FakeTransfer:
    return FakeTransfer()
