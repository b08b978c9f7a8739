"""
Retry policy for repository downloads.

Mirrors are flaky: timeouts and refused connections are retried with an
exponentially growing, jittered delay. HTTP error statuses are not retried
here; the caller decides what a 404 means.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError)


class ExponentialBackoff:
    """Exponential backoff with ±25% jitter."""

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_retries: int = 3,
        rng: random.Random | None = None,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_retries = max_retries
        self.rng = rng or random.Random()

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1``."""
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        jitter = delay * 0.25 * (self.rng.random() * 2 - 1)
        return max(0.0, delay + jitter)

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_retries


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    backoff: ExponentialBackoff,
    description: str = "request",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``operation()`` until it succeeds or retries are exhausted.

    Only transport errors listed in RETRYABLE_ERRORS are retried; the last
    one is re-raised once ``backoff`` gives up.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except RETRYABLE_ERRORS as e:
            if not backoff.should_retry(attempt):
                logger.debug(f"{description} failed after {attempt + 1} attempts")
                raise
            delay = backoff.calculate_delay(attempt)
            logger.debug(
                f"{description} failed ({type(e).__name__}), retry {attempt + 1} after {delay:.1f}s"
            )
            await sleep(delay)
            attempt += 1
