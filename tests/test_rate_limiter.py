from __future__ import annotations

import pytest

from searchscope.config import load_settings
from searchscope.exceptions import RateLimitedError
from searchscope.services.rate_limiter import (
    AllowAllRateLimiter,
    RateLimiters,
    SlidingWindowRateLimiter,
    enforce,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_sliding_window_admits_again_after_window_passes():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)

    assert await limiter.limit("client")
    assert await limiter.limit("client")
    assert not await limiter.limit("client")
    assert await limiter.limit("other-client")

    clock.now = 60.0
    assert await limiter.limit("client")


@pytest.mark.asyncio
async def test_enforce_raises_when_limit_reached():
    limiter = SlidingWindowRateLimiter(max_requests=1)
    await enforce(limiter, "k", what="search")
    with pytest.raises(RateLimitedError, match="search"):
        await enforce(limiter, "k", what="search")


def test_limiters_disabled_by_default():
    limiters = RateLimiters.from_settings(load_settings(_env_file=None))
    assert isinstance(limiters.search, AllowAllRateLimiter)


def test_limiters_follow_configured_budgets():
    settings = load_settings(_env_file=None, rate_limits_enabled=True, rate_limit_report=2)
    limiters = RateLimiters.from_settings(settings)
    assert isinstance(limiters.report, SlidingWindowRateLimiter)
    assert limiters.report.max_requests == 2
    assert limiters.search.max_requests == 5


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("DEFAULT_PROVIDER", "brave")
    monkeypatch.setenv("FETCH_ALL_CAP", "40")
    settings = load_settings(_env_file=None)
    assert settings.default_provider == "brave"
    assert settings.fetch_all_cap == 40


def test_overrides_win_over_environment(monkeypatch):
    monkeypatch.setenv("RESULTS_PER_PAGE", "25")
    assert load_settings(_env_file=None, results_per_page=5).results_per_page == 5


def test_cors_origin_list_splits_on_commas():
    settings = load_settings(_env_file=None, cors_origins="http://a.test, http://b.test")
    assert settings.cors_origin_list == ["http://a.test", "http://b.test"]
