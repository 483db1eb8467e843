from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Protocol

from searchscope.config import Settings
from searchscope.exceptions import RateLimitedError


class RateLimiter(Protocol):
    async def limit(self, key: str) -> bool:
        """Return True when a request for `key` may proceed."""
        ...


class AllowAllRateLimiter:
    """Used when rate limiting is disabled."""

    async def limit(self, key: str) -> bool:
        return True


class SlidingWindowRateLimiter:
    """In-process sliding window limiter, `max_requests` per `window_seconds`."""

    def __init__(self, max_requests: int, window_seconds: float = 60.0, clock=time.monotonic):
        self.max_requests = max(int(max_requests), 1)
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}

    async def limit(self, key: str) -> bool:
        now = self._clock()
        hits = self._hits.setdefault(key, deque())
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True


@dataclass(frozen=True)
class RateLimiters:
    search: RateLimiter
    content_fetch: RateLimiter
    report: RateLimiter

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiters":
        if not settings.rate_limits_enabled:
            allow = AllowAllRateLimiter()
            return cls(search=allow, content_fetch=allow, report=allow)
        return cls(
            search=SlidingWindowRateLimiter(settings.rate_limit_search),
            content_fetch=SlidingWindowRateLimiter(settings.rate_limit_content_fetch),
            report=SlidingWindowRateLimiter(settings.rate_limit_report),
        )


async def enforce(limiter: RateLimiter, key: str, *, what: str) -> None:
    if not await limiter.limit(key):
        raise RateLimitedError(f"Rate limit exceeded for {what}")
