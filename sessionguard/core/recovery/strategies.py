"""
Retry Strategies

Retry behaviour for individual sweep transfers.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Optional, Tuple, TypeVar

import structlog

from ..errors import RecoverableError, UnrecoverableError, classify_error

T = TypeVar("T")

logger = structlog.stdlib.get_logger(__name__)

# Called after each failed attempt with (error, attempt_number)
FailureHook = Callable[[Exception, int], Awaitable[None]]


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 1
    initial_delay_seconds: float = 10.0
    max_delay_seconds: float = 60.0
    exponential_base: float = 3.0
    jitter: bool = True
    jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def get_delay(self, attempt: int) -> float:
        """Calculate delay after the given zero-based attempt."""
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** attempt),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0)


class RetryExhaustedError(Exception):
    """Raised with the last error once every attempt has failed."""

    def __init__(self, last_error: Exception, attempts: int):
        super().__init__(str(last_error))
        self.last_error = last_error
        self.attempts = attempts


class ExponentialBackoffStrategy:
    """
    Retries recoverable errors with exponential backoff.

    Unrecoverable errors stop immediately. Every failed attempt, including
    the last, is reported to the failure hook so it can be recorded.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Coroutine[Any, Any, None]] = asyncio.sleep,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Coroutine[Any, Any, T]],
        on_failure: Optional[FailureHook] = None,
    ) -> Tuple[T, int]:
        """
        Run the operation until it succeeds or attempts are exhausted.

        Returns:
            (result, attempts) on success

        Raises:
            RetryExhaustedError: Wrapping the last error
        """
        for attempt in range(self.config.max_attempts):
            try:
                return await operation(), attempt + 1
            except Exception as e:
                if on_failure is not None:
                    await on_failure(e, attempt + 1)

                if not self.should_retry(e, attempt):
                    raise RetryExhaustedError(e, attempt + 1) from e

                delay = self._get_delay(e, attempt)
                logger.warning(
                    "retry_scheduled",
                    attempt=attempt + 1,
                    max_attempts=self.config.max_attempts,
                    delay_seconds=round(delay, 1),
                    error=str(e),
                )
                await self._sleep(delay)

        raise RuntimeError("All retry attempts exhausted")

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.config.max_attempts - 1:
            return False

        if isinstance(error, UnrecoverableError):
            return False

        if isinstance(error, RecoverableError):
            return True

        return classify_error(error).recoverable

    def _get_delay(self, error: Exception, attempt: int) -> float:
        if isinstance(error, RecoverableError) and error.retry_after:
            return error.retry_after
        return self.config.get_delay(attempt)
