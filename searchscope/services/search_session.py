"""Interactive search session: pagination, selection, custom URLs, prioritizing.

This is the non-agent flow. A user searches, pages through results, pins
custom URLs, selects sources by hand, asks the ranker to re-order the full
result set, and finally generates a report from the selection.
"""
from __future__ import annotations

import time
from typing import Sequence
from uuid import uuid4

from loguru import logger

from searchscope.agents.ranker import Ranker, sort_by_score
from searchscope.agents.reporter import ReportGenerator
from searchscope.config import Settings
from searchscope.exceptions import RateLimitedError, SearchScopeError, ValidationError
from searchscope.models.schemas import (
    AggregatedPage,
    Article,
    ProviderId,
    Report,
    SearchFilters,
    SearchResult,
)
from searchscope.services.aggregator import ResultAggregator, merge_retained
from searchscope.services.pagination import PaginationStore
from searchscope.tools.content_fetcher import ContentFetcher
from searchscope.tools.web_utils import is_valid_url


class SearchSession:
    def __init__(
        self,
        settings: Settings,
        aggregator: ResultAggregator,
        *,
        ranker: Ranker | None = None,
        fetcher: ContentFetcher | None = None,
        reporter: ReportGenerator | None = None,
    ):
        self.settings = settings
        self.aggregator = aggregator
        self.ranker = ranker
        self.fetcher = fetcher
        self.reporter = reporter
        self.store = PaginationStore(settings.results_per_page)
        self.query = ""
        self.filters = SearchFilters(page_size=settings.results_per_page)
        self.providers: list[ProviderId | str] | None = None
        self.results: list[SearchResult] = []
        self.selected_ids: list[str] = []
        self.analysis = ""

    @property
    def selected_results(self) -> list[SearchResult]:
        by_id = {r.id: r for r in self.results}
        return [by_id[i] for i in self.selected_ids if i in by_id]

    async def _fetch_page(self, n: int) -> AggregatedPage:
        return await self.aggregator.aggregate(self.query, self.filters.for_page(n), self.providers)

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        providers: Sequence[ProviderId | str] | None = None,
    ) -> AggregatedPage:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Query is required")
        self.query = query
        self.filters = (filters or SearchFilters(page_size=self.settings.results_per_page)).for_page(1)
        self.providers = list(providers) if providers else None
        self.store = PaginationStore(self.filters.page_size)
        self.store.reset(session_key=uuid4().hex)
        self.analysis = ""

        page = await self._fetch_page(1)
        self.store.put_page(1, page.results, total_results=page.total_results)
        self.results = merge_retained(self.results, page.results, self.selected_ids)
        return page

    async def go_to_page(self, n: int) -> list[SearchResult]:
        if not self.query:
            raise ValidationError("Run a search before paging")
        page = await self.store.navigate(n, self._fetch_page)
        self.results = merge_retained(self.results, page, self.selected_ids)
        return page

    def add_custom_url(self, url: str) -> SearchResult:
        url = (url or "").strip()
        if not is_valid_url(url):
            raise ValidationError(f"Invalid URL: {url}")
        for existing in self.results:
            if existing.url == url:
                return existing
        result = SearchResult(
            id=f"custom-{int(time.time() * 1000)}-{url}",
            url=url,
            name="Custom URL",
            snippet="Custom URL added by user",
            source="custom",
            is_custom_url=True,
        )
        self.results.insert(0, result)
        return result

    def remove_result(self, result_id: str) -> None:
        self.results = [r for r in self.results if r.id != result_id]
        self.selected_ids = [i for i in self.selected_ids if i != result_id]

    def toggle_selection(self, result_id: str) -> bool:
        """Flip selection; returns False when the selection cap blocks it."""
        if result_id in self.selected_ids:
            self.selected_ids.remove(result_id)
            return True
        if len(self.selected_ids) >= self.settings.max_selectable_results:
            logger.info(f"Selection cap of {self.settings.max_selectable_results} reached")
            return False
        if not any(r.id == result_id for r in self.results):
            raise ValidationError(f"Unknown result id: {result_id}")
        self.selected_ids.append(result_id)
        return True

    async def prioritize(self, model_id: str | None = None) -> str:
        """Fetch the full result set, rank it, and re-lay the pages by score.

        Custom URLs stay pinned to the top of page 1.
        """
        if self.ranker is None:
            raise ValidationError("Ranking is not available for this session")
        if not self.query:
            raise ValidationError("Run a search before prioritizing")

        fetched = await self.aggregator.fetch_all(self.query, self.filters, self.settings.fetch_all_cap)
        candidates = fetched.results or [r for r in self.results if not r.is_custom_url]
        if not candidates:
            raise ValidationError("No results to prioritize")

        outcome = await self.ranker.score(self.query, candidates, model_id)
        pinned = [r for r in self.results if r.is_custom_url]
        first_page = self.store.replace_all(sort_by_score(outcome.results), pinned=pinned)
        self.results = merge_retained(self.results, first_page, self.selected_ids)
        self.analysis = outcome.analysis
        logger.info(
            f"Prioritized {len(outcome.results)} results into {self.store.state.total_pages} pages"
        )
        return outcome.analysis

    async def generate_report(self, prompt: str | None = None, model_id: str | None = None) -> Report:
        if self.reporter is None or self.fetcher is None:
            raise ValidationError("Report generation is not available for this session")
        selected = self.selected_results
        if not selected:
            raise ValidationError("Select at least one result first")

        articles: list[Article] = []
        for result in selected:
            content = result.content
            title = result.name
            if not content:
                try:
                    fetched = await self.fetcher.fetch(result.url)
                except RateLimitedError:
                    raise
                except SearchScopeError as exc:
                    logger.warning(f"Using snippet for {result.url}: {exc}")
                    content = result.snippet
                else:
                    content, title = fetched.content, fetched.title or result.name
            articles.append(Article(url=result.url, title=title, content=content))
        return await self.reporter.generate(articles, selected, prompt or self.query, model_id)
