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

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"

BRAVE_MAX_OFFSET = 9
BRAVE_MAX_COUNT = 20


class BraveSearchAdapter(ProviderAdapter):
    provider_id = ProviderId.BRAVE
    # Brave has no 6-month, 5-year or 10-year window.
    time_windows = {
        TimeWindow.DAY: "pd",
        TimeWindow.WEEK: "pw",
        TimeWindow.MONTH: "pm",
        TimeWindow.TWELVE_MONTHS: "py",
    }

    async def _search(self, query: str, filters: SearchFilters) -> ProviderResponse:
        """Execute a Brave web search and normalize results."""
        if not self.settings.brave_api_key:
            raise MisconfiguredError("BRAVE_API_KEY is not configured")

        # Brave's offset counts pages of `count` results, not items.
        offset = filters.page - 1
        if offset > BRAVE_MAX_OFFSET:
            return ProviderResponse(results=[], total_results=0, provider=self.provider_id)

        count = min(filters.page_size, BRAVE_MAX_COUNT)
        params: dict[str, Any] = {
            "q": query,
            "count": count,
            "offset": offset,
        }
        freshness = self.native_time_filter(filters.time_window)
        if freshness:
            params["freshness"] = freshness

        payload = await fetch_json(
            self.provider_id,
            BRAVE_SEARCH_URL,
            params=params,
            headers={
                "Accept": "application/json",
                "X-Subscription-Token": self.settings.brave_api_key,
            },
            timeout=self.settings.http_timeout_seconds,
        )

        raw_results = payload.get("web", {}).get("results", []) or []
        mapped: list[SearchResult] = []
        for item in raw_results:
            url = item.get("url", "")
            if not url:
                continue
            snippets = item.get("extra_snippets", []) or []
            description = item.get("description", "") or ""
            mapped.append(
                SearchResult(
                    id=f"brave-{url}",
                    url=url,
                    name=item.get("title", ""),
                    snippet=description.strip() or " ".join(snippets).strip(),
                    source=self.provider_id.value,
                )
            )

        # Brave reports no total; estimate from whether more pages exist.
        seen = (filters.page - 1) * filters.page_size + len(mapped)
        more = bool(payload.get("query", {}).get("more_results_available"))
        total = seen + filters.page_size if more and offset < BRAVE_MAX_OFFSET else seen
        return ProviderResponse(results=mapped, total_results=total, provider=self.provider_id)
