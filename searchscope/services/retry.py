"""Bounded retry with exponential backoff for external calls."""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from searchscope.config import Settings
from searchscope.exceptions import MisconfiguredError, QuotaExceededError, RateLimitedError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for one call site.

    Only exceptions listed in `retry_on` are retried; everything else
    propagates on the first failure. The delay before retry `i` (0-based) is
    `base_delay * 2**i` plus up to `jitter` seconds. Rate-limit failures use
    `rate_limited_base_delay` instead of `base_delay` when it is set.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    jitter: float = 0.0
    retry_on: tuple[type[BaseException], ...] = (RateLimitedError,)
    rate_limited_base_delay: float | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "RetryPolicy":
        values = {
            "max_attempts": max(int(settings.retry_max_attempts), 1),
            "base_delay": float(settings.retry_base_delay_seconds),
        }
        values.update(overrides)
        return cls(**values)

    def delay_for(self, attempt: int, exc: BaseException) -> float:
        base = self.base_delay
        if isinstance(exc, RateLimitedError) and self.rate_limited_base_delay is not None:
            base = self.rate_limited_base_delay
        delay = base * (2**attempt)
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return delay

    def should_retry(self, exc: BaseException) -> bool:
        if isinstance(exc, (MisconfiguredError, QuotaExceededError)):
            return False
        return isinstance(exc, self.retry_on)

    async def run(self, operation: Callable[[], Awaitable[T]], *, caller: str = "") -> T:
        return await retry_with_backoff(operation, policy=self, caller=caller)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    caller: str = "",
) -> T:
    policy = policy or RetryPolicy()
    attempts = max(policy.max_attempts, 1)
    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as exc:
            if not policy.should_retry(exc) or attempt + 1 >= attempts:
                raise
            delay = policy.delay_for(attempt, exc)
            logger.warning(
                f"{caller or 'call'} failed ({exc}); retrying in {delay:.2f}s "
                f"(retry {attempt + 1}/{attempts - 1})"
            )
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")  # pragma: no cover
