from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from searchscope.exceptions import ValidationError
from searchscope.models.schemas import AggregatedPage, SearchResult, total_pages_for

PageFetcher = Callable[[int], Awaitable[AggregatedPage]]


@dataclass
class PaginationState:
    current_page: int = 1
    total_pages: int = 0
    total_results: int = 0
    results_prioritized: bool = False

    def to_dict(self) -> dict:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalResults": self.total_results,
            "resultsPrioritized": self.results_prioritized,
        }


class PaginationStore:
    """Page-number keyed cache of result pages for one search session.

    Pages are swapped in as whole mappings, so a reader never sees a
    partially rebuilt page set.
    """

    def __init__(self, page_size: int = 10):
        if page_size < 1:
            raise ValidationError("Page size must be >= 1")
        self.page_size = page_size
        self.state = PaginationState()
        self.session_key: str | None = None
        self._pages: dict[int, list[SearchResult]] = {}
        self._reported_total = 0

    @property
    def pages(self) -> dict[int, list[SearchResult]]:
        return {n: list(page) for n, page in self._pages.items()}

    def all_results(self) -> list[SearchResult]:
        return [r for n in sorted(self._pages) for r in self._pages[n]]

    def reset(self, session_key: str | None = None) -> None:
        self._pages = {}
        self._reported_total = 0
        self.session_key = session_key
        self.state = PaginationState()

    def get_page(self, n: int) -> list[SearchResult] | None:
        page = self._pages.get(n)
        return list(page) if page is not None else None

    def put_page(self, n: int, page: Sequence[SearchResult], *, total_results: int | None = None) -> None:
        if n < 1:
            raise ValidationError(f"Page must be >= 1, got {n}")
        pages = dict(self._pages)
        pages[n] = list(page)
        self._pages = pages
        if total_results is not None:
            self._reported_total = max(int(total_results), 0)
        self.recompute_totals()

    def recompute_totals(self) -> None:
        materialized = sum(len(page) for page in self._pages.values())
        if self.state.results_prioritized:
            total = materialized
        else:
            total = max(self._reported_total, materialized)
        self.state.total_results = total
        self.state.total_pages = total_pages_for(total, self.page_size)
        if self.state.total_pages and self.state.current_page > self.state.total_pages:
            self.state.current_page = self.state.total_pages

    def replace_all(
        self,
        results: Sequence[SearchResult],
        pinned: Sequence[SearchResult] = (),
    ) -> list[SearchResult]:
        """Re-lay the full list into pages, pinned results first.

        Returns the new first page. Every result lands on exactly one page.
        """
        ordered: list[SearchResult] = []
        seen: set[str] = set()
        for result in [*pinned, *results]:
            if result.url in seen:
                continue
            seen.add(result.url)
            ordered.append(result)

        pages = {
            index // self.page_size + 1: ordered[index : index + self.page_size]
            for index in range(0, len(ordered), self.page_size)
        }
        self._pages = pages
        self._reported_total = len(ordered)
        self.state.results_prioritized = True
        self.state.current_page = 1
        self.recompute_totals()
        return list(pages.get(1, []))

    async def navigate(self, n: int, fetch_page: PageFetcher) -> list[SearchResult]:
        if n < 1:
            raise ValidationError(f"Page must be >= 1, got {n}")

        cached = self.get_page(n)
        if cached is not None:
            self.state.current_page = n
            return cached

        if self.state.results_prioritized:
            raise ValidationError(f"Page {n} is beyond the prioritized results")

        aggregated = await fetch_page(n)
        self.put_page(n, aggregated.results, total_results=aggregated.total_results)
        self.state.current_page = n
        return list(aggregated.results)
