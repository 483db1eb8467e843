from __future__ import annotations

from typing import Any

from searchscope.exceptions import MisconfiguredError
from searchscope.models.schemas import (
    ProviderId,
    ProviderResponse,
    SearchFilters,
    SearchResult,
    TimeWindow,
)
from searchscope.tools.provider_base import ProviderAdapter, fetch_json

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"

# Custom Search serves at most 100 results per query (start + num <= 101).
GOOGLE_MAX_RESULTS = 100
GOOGLE_MAX_PAGE_SIZE = 10


class GoogleSearchAdapter(ProviderAdapter):
    provider_id = ProviderId.GOOGLE
    time_windows = {
        TimeWindow.DAY: "d1",
        TimeWindow.WEEK: "w1",
        TimeWindow.MONTH: "m1",
        TimeWindow.SIX_MONTHS: "m6",
        TimeWindow.TWELVE_MONTHS: "y1",
        TimeWindow.FIVE_YEARS: "y5",
        TimeWindow.TEN_YEARS: "y10",
    }

    async def _search(self, query: str, filters: SearchFilters) -> ProviderResponse:
        """Execute Google Custom Search requests for one page and normalize results.

        The API returns at most 10 items per call, so a larger page is read as
        consecutive ``start`` windows and concatenated.
        """
        if not self.settings.google_api_key or not self.settings.google_cse_id:
            raise MisconfiguredError("GOOGLE_API_KEY / GOOGLE_CSE_ID are not configured")

        first = (filters.page - 1) * filters.page_size + 1
        last = min(first + filters.page_size - 1, GOOGLE_MAX_RESULTS)
        if first > last:
            return ProviderResponse(results=[], total_results=GOOGLE_MAX_RESULTS, provider=self.provider_id)

        results: list[SearchResult] = []
        total = 0
        for start in range(first, last + 1, GOOGLE_MAX_PAGE_SIZE):
            num = min(GOOGLE_MAX_PAGE_SIZE, last - start + 1)
            payload = await self._fetch_window(query, filters, start, num)
            items = payload.get("items", []) or []
            results.extend(self._normalize(items))
            if start == first:
                total = self._reported_total(payload, len(results))
            if len(items) < num:
                break

        return ProviderResponse(results=results, total_results=total, provider=self.provider_id)

    async def _fetch_window(self, query: str, filters: SearchFilters, start: int, num: int) -> dict[str, Any]:
        params: dict[str, Any] = {
            "key": self.settings.google_api_key,
            "cx": self.settings.google_cse_id,
            "q": query,
            "num": num,
            "start": start,
            "safe": self.settings.google_safe_search,
        }
        date_restrict = self.native_time_filter(filters.time_window)
        if date_restrict:
            params["dateRestrict"] = date_restrict

        return await fetch_json(
            self.provider_id,
            GOOGLE_SEARCH_URL,
            params=params,
            timeout=self.settings.http_timeout_seconds,
        )

    def _normalize(self, items: list[dict[str, Any]]) -> list[SearchResult]:
        results: list[SearchResult] = []
        for item in items:
            url = item.get("link", "")
            if not url:
                continue
            cache_id = item.get("cacheId") or None
            results.append(
                SearchResult(
                    id=f"google-{cache_id or url}",
                    url=url,
                    name=item.get("title", ""),
                    snippet=item.get("snippet", "") or "",
                    source=self.provider_id.value,
                    provider_ref=cache_id,
                )
            )
        return results

    @staticmethod
    def _reported_total(payload: dict[str, Any], fallback: int) -> int:
        try:
            reported = int(payload.get("searchInformation", {}).get("totalResults", 0))
        except (TypeError, ValueError):
            reported = fallback
        return min(reported, GOOGLE_MAX_RESULTS)
