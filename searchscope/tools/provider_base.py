"""Shared contract and HTTP helpers for search provider adapters."""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Mapping

import httpx

from searchscope.config import Settings
from searchscope.exceptions import (
    MisconfiguredError,
    QuotaExceededError,
    RateLimitedError,
    UpstreamError,
    ValidationError,
)
from searchscope.models.schemas import (
    TIME_WINDOW_ORDER,
    ProviderId,
    ProviderResponse,
    SearchFilters,
    TimeWindow,
)
from searchscope.services import logger as log_service

QUOTA_MARKERS = ("quota", "ratelimitexceeded", "dailylimitexceeded", "usage limit", "limit exceeded")


def map_time_window(window: TimeWindow, native: Mapping[TimeWindow, Any]) -> Any | None:
    """Return the provider's value for `window`, or None to omit the filter.

    Falls back to the closest coarser window the provider supports; never a
    narrower one.
    """
    if window == TimeWindow.ALL:
        return None
    start = TIME_WINDOW_ORDER.index(window)
    for candidate in TIME_WINDOW_ORDER[start:]:
        if candidate == TimeWindow.ALL:
            break
        if candidate in native:
            return native[candidate]
    return None


def raise_for_status(response: httpx.Response, provider: ProviderId) -> None:
    status = response.status_code
    if status < 400:
        return

    body = (response.text or "")[:500]
    label = provider.value
    if status == 429:
        raise RateLimitedError(f"{label} rate limited (429)")
    if status == 403:
        if any(marker in body.lower() for marker in QUOTA_MARKERS):
            raise QuotaExceededError(f"{label} quota exceeded (403)")
        raise MisconfiguredError(f"{label} rejected credentials (403)")
    if status == 401:
        raise MisconfiguredError(f"{label} rejected credentials (401)")
    if status == 400:
        raise ValidationError(f"{label} rejected the request (400): {body}")
    raise UpstreamError(f"{label} request failed ({status})")


async def fetch_json(
    provider: ProviderId,
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    timeout: float = 30.0,
) -> Any:
    """GET `url` and decode JSON, translating failures into error kinds."""
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(url, params=params, headers=headers)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"{provider.value} request failed: {exc}") from exc

    raise_for_status(response, provider)
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamError(f"{provider.value} returned invalid JSON") from exc


class ProviderAdapter(ABC):
    """Translates normalized queries into one provider's API and back."""

    provider_id: ProviderId
    time_windows: Mapping[TimeWindow, Any] = {}

    def __init__(self, settings: Settings):
        self.settings = settings

    def native_time_filter(self, window: TimeWindow) -> Any | None:
        return map_time_window(window, self.time_windows)

    @abstractmethod
    async def _search(self, query: str, filters: SearchFilters) -> ProviderResponse:
        ...

    async def search(self, query: str, filters: SearchFilters) -> ProviderResponse:
        t0 = time.monotonic()
        try:
            response = await self._search(query, filters)
        except Exception as exc:
            log_service.log_provider_call(
                self.provider_id.value,
                query,
                filters.page,
                duration_ms=int((time.monotonic() - t0) * 1000),
                error=str(exc),
            )
            raise
        log_service.log_provider_call(
            self.provider_id.value,
            query,
            filters.page,
            result_count=len(response.results),
            total_results=response.total_results,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return response
