"""
Async retry with bounded backoff.

Applies a RetryPolicy to any zero-argument coroutine factory. The sleep
function is injectable so callers (and tests) control the wall clock.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, TypeVar

from finsync.observability.logger import get_logger
from finsync.observability.metrics import increment_counter, retries_total

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget and backoff schedule.

    Attributes:
        max_attempts: Total attempts, the first one included
        base_delay_s: Delay before the first retry
        backoff: "linear" waits base * n before retry n, "exponential" base * 2**(n-1)
        max_delay_s: Upper bound for any single delay
    """

    max_attempts: int = 3
    base_delay_s: float = 1.0
    backoff: Literal["linear", "exponential"] = "linear"
    max_delay_s: float = 30.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay_s < 0 or self.max_delay_s < 0:
            raise ValueError("Retry delays must be non-negative")
        if self.backoff not in ("linear", "exponential"):
            raise ValueError(f"Unknown backoff strategy: {self.backoff}")

    def delay_for(self, attempt: int) -> float:
        """
        Delay to wait after failed attempt number `attempt` (1-based).

        Delays never decrease from one attempt to the next.

        Examples:
            >>> RetryPolicy().delay_for(1), RetryPolicy().delay_for(2)
            (1.0, 2.0)
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        if self.backoff == "linear":
            delay = self.base_delay_s * attempt
        else:
            delay = self.base_delay_s * (2 ** (attempt - 1))
        return min(delay, self.max_delay_s)

    @property
    def total_delay_s(self) -> float:
        """Worst-case time spent sleeping across the whole budget."""
        return sum(self.delay_for(n) for n in range(1, self.max_attempts))


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: Callable[[Exception], bool],
    sleep: Sleep = asyncio.sleep,
    operation: str = "operation",
) -> T:
    """
    Await `fn()` until it succeeds or the attempt budget is spent.

    Args:
        fn: Zero-argument coroutine factory
        policy: Attempt budget and backoff
        retry_on: True for exceptions worth retrying
        sleep: Coroutine used to wait between attempts
        operation: Label for logs and the retries metric

    Returns:
        The result of the first successful attempt

    Raises:
        The last exception once attempts are exhausted, or at once when
        `retry_on` rejects it
    """
    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as exc:
            if attempt >= policy.max_attempts or not retry_on(exc):
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                f"{operation} failed, retrying",
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                    "delay_seconds": delay,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                },
            )
            increment_counter(retries_total, operation=operation)
            await sleep(delay)
            attempt += 1
