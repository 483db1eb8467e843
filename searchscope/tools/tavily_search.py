from __future__ import annotations

from typing import Any

from tavily import AsyncTavilyClient
from tavily.errors import InvalidAPIKeyError, MissingAPIKeyError, UsageLimitExceededError

from searchscope.exceptions import (
    MisconfiguredError,
    QuotaExceededError,
    SearchScopeError,
    UpstreamError,
)
from searchscope.models.schemas import (
    ProviderId,
    ProviderResponse,
    SearchFilters,
    SearchResult,
    TimeWindow,
)
from searchscope.tools.provider_base import ProviderAdapter

# Tavily has no offset; it returns at most this many results per query.
TAVILY_MAX_RESULTS = 20


class TavilySearchAdapter(ProviderAdapter):
    provider_id = ProviderId.TAVILY
    time_windows = {
        TimeWindow.DAY: "day",
        TimeWindow.WEEK: "week",
        TimeWindow.MONTH: "month",
        TimeWindow.TWELVE_MONTHS: "year",
    }

    async def _search(self, query: str, filters: SearchFilters) -> ProviderResponse:
        """Execute a Tavily web search and slice out the requested page."""
        if not self.settings.tavily_api_key:
            raise MisconfiguredError("TAVILY_API_KEY is not configured")

        start = (filters.page - 1) * filters.page_size
        if start >= TAVILY_MAX_RESULTS:
            return ProviderResponse(results=[], total_results=0, provider=self.provider_id)

        kwargs: dict[str, Any] = {
            "query": query,
            "search_depth": self.settings.tavily_search_depth,
            "max_results": min(filters.page * filters.page_size, TAVILY_MAX_RESULTS),
            "topic": "general",
        }
        time_range = self.native_time_filter(filters.time_window)
        if time_range:
            kwargs["time_range"] = time_range

        client = AsyncTavilyClient(api_key=self.settings.tavily_api_key)
        try:
            response = await client.search(**kwargs)
        except UsageLimitExceededError as exc:
            raise QuotaExceededError(f"tavily usage limit exceeded: {exc}") from exc
        except (InvalidAPIKeyError, MissingAPIKeyError) as exc:
            raise MisconfiguredError(f"tavily rejected credentials: {exc}") from exc
        except SearchScopeError:
            raise
        except Exception as exc:
            raise UpstreamError(f"tavily request failed: {exc}") from exc

        all_results = [
            SearchResult(
                id=f"tavily-{r.get('url', '')}",
                url=r.get("url", ""),
                name=r.get("title", ""),
                snippet=r.get("content", "") or "",
                source=self.provider_id.value,
            )
            for r in response.get("results", []) or []
            if r.get("url")
        ]
        page = all_results[start : start + filters.page_size]
        return ProviderResponse(results=page, total_results=len(all_results), provider=self.provider_id)
