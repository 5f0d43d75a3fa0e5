"""
Tests for sweep retry strategies.
"""

from typing import List

import httpx
import pytest

from sessionguard.core.errors import (
    BackendUnavailableError,
    MalformedInputError,
    TransferFailedError,
)
from sessionguard.core.recovery import (
    ExponentialBackoffStrategy,
    RetryConfig,
    RetryExhaustedError,
)


def strategy(max_attempts: int = 3, sleeps: List[float] = None) -> ExponentialBackoffStrategy:
    async def fake_sleep(delay):
        if sleeps is not None:
            sleeps.append(delay)

    return ExponentialBackoffStrategy(
        RetryConfig(max_attempts=max_attempts, initial_delay_seconds=10, jitter=False),
        sleep=fake_sleep,
    )


class TestRetryConfig:
    def test_default_is_single_attempt(self):
        assert RetryConfig().max_attempts == 1

    def test_backoff_schedule(self):
        config = RetryConfig(initial_delay_seconds=10, max_delay_seconds=60, jitter=False)
        assert [config.get_delay(i) for i in range(4)] == [10, 30, 60, 60]

    def test_jitter_stays_within_bounds(self):
        config = RetryConfig(initial_delay_seconds=10, jitter=True, jitter_factor=0.1)
        for _ in range(20):
            assert 9 <= config.get_delay(0) <= 11

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)


class TestExponentialBackoffStrategy:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        async def operation():
            return "sig"

        assert await strategy().execute(operation) == ("sig", 1)

    @pytest.mark.asyncio
    async def test_retries_recoverable_errors(self):
        sleeps: List[float] = []
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise TransferFailedError("Temporary failure")
            return "sig"

        result, attempts = await strategy(3, sleeps).execute(operation)

        assert result == "sig"
        assert attempts == 3
        assert sleeps == [10, 30]

    @pytest.mark.asyncio
    async def test_honours_retry_after(self):
        sleeps: List[float] = []
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                raise BackendUnavailableError("rate limited", retry_after=60.0)
            return None

        await strategy(2, sleeps).execute(operation)

        assert sleeps == [60.0]

    @pytest.mark.asyncio
    async def test_unrecoverable_stops_immediately(self):
        failures = []

        async def operation():
            raise MalformedInputError("bad address")

        async def on_failure(error, attempt):
            failures.append(attempt)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await strategy(3).execute(operation, on_failure=on_failure)

        assert exc_info.value.attempts == 1
        assert isinstance(exc_info.value.last_error, MalformedInputError)
        assert failures == [1]

    @pytest.mark.asyncio
    async def test_exhaustion_reports_every_attempt(self):
        failures = []

        async def operation():
            raise TransferFailedError("Always fails")

        async def on_failure(error, attempt):
            failures.append(attempt)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await strategy(3).execute(operation, on_failure=on_failure)

        assert exc_info.value.attempts == 3
        assert failures == [1, 2, 3]

    def test_should_retry_classifies_foreign_errors(self):
        s = strategy(3)
        request = httpx.Request("POST", "http://upstream/sweep")

        assert s.should_retry(httpx.ConnectError("refused", request=request), attempt=0) is True
        assert s.should_retry(ValueError("bad"), attempt=0) is False
        assert s.should_retry(TransferFailedError("x"), attempt=2) is False
