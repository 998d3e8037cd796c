"""Exponential-backoff retry helper for idempotent fetches."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from ..config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Return the wait before retry number ``attempt`` (zero-based)."""

        return self.base_delay * (2**attempt)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(max_attempts=settings.retry_max_attempts, base_delay=settings.retry_base_delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Await ``operation`` until it succeeds or ``policy.max_attempts`` is spent.

    The last error is re-raised once every attempt has failed.
    """

    policy = policy or RetryPolicy.from_settings()
    attempts = max(1, policy.max_attempts)
    for attempt in range(attempts):
        try:
            return await operation()
        except retry_on as exc:
            if attempt + 1 >= attempts:
                logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise
            delay = policy.delay_for(attempt)
            logger.warning("Attempt %d/%d failed (%s); retrying in %.1fs", attempt + 1, attempts, exc, delay)
            await sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["RetryPolicy", "retry_async"]
