"""
Retry and timeout policies for model calls
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .errors import ExtractionError, classify_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with proportional jitter"""

    max_attempts: int = 3
    base_delay: float = 5.0
    max_delay: float = 60.0
    jitter_factor: float = 0.1

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter_factor < 0:
            raise ValueError("delays and jitter_factor must be non-negative")

    def compute_delay(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """
        Delay before retrying after the given (1-based) failed attempt

        Args:
            attempt: Number of the attempt that just failed
            rng: Source of uniform [0, 1) values, injectable for tests

        Returns:
            Delay in seconds
        """
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        return delay + delay * self.jitter_factor * rng()


@dataclass(frozen=True)
class TimeoutPolicy:
    """Per-call timeout that grows with request size"""

    base_seconds: float = 90.0
    seconds_per_100kb: float = 15.0
    max_additional_seconds: float = 90.0

    def for_payload(self, size_bytes: int) -> float:
        additional = (max(size_bytes, 0) / 100_000) * self.seconds_per_100kb
        return self.base_seconds + min(additional, self.max_additional_seconds)


async def retry_with_policy(
    operation: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    description: str = "model call",
) -> Any:
    """
    Run an async operation, retrying retryable failures per policy

    Exceptions are classified with classify_error; non-retryable errors are
    raised on first occurrence, retryable ones after the final attempt.

    Args:
        operation: Zero-argument coroutine factory
        policy: Retry policy
        sleep: Awaitable sleep, injectable for tests
        rng: Jitter source, injectable for tests
        description: Label used in log messages

    Returns:
        The operation's result
    """
    last_error: Optional[ExtractionError] = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            error = classify_error(e)
            last_error = error

            if not error.retryable:
                logger.error(f"{description} failed with non-retryable {type(error).__name__}: {error}")
                if error is e:
                    raise
                raise error from e

            if attempt == policy.max_attempts:
                logger.error(f"{description} failed after {attempt} attempt(s): {error}")
                if error is e:
                    raise
                raise error from e

            delay = policy.compute_delay(attempt, rng)
            logger.warning(
                f"{description} attempt {attempt}/{policy.max_attempts} failed "
                f"({type(error).__name__}); retrying in {delay:.1f}s"
            )
            await sleep(delay)

    raise last_error  # pragma: no cover
