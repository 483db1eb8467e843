from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from searchscope.exceptions import ValidationError
from searchscope.models.schemas import AggregatedPage
from searchscope.services.pagination import PaginationStore
from conftest import make_result


def _page(results, total, n=1):
    return AggregatedPage(results=results, total_results=total, current_page=n, page_size=10)


def test_replace_all_places_every_result_on_exactly_one_page():
    store = PaginationStore(page_size=10)
    results = [make_result(i, f"site{i}.com") for i in range(23)]

    first = store.replace_all(results)

    pages = store.pages
    assert sorted(pages) == [1, 2, 3]
    assert [len(pages[n]) for n in (1, 2, 3)] == [10, 10, 3]
    flattened = [r.url for n in sorted(pages) for r in pages[n]]
    assert flattened == [r.url for r in results]
    assert first == pages[1]
    assert store.state.results_prioritized
    assert store.state.total_results == 23
    assert store.state.total_pages == 3


def test_replace_all_pins_custom_results_and_drops_duplicates():
    store = PaginationStore(page_size=2)
    custom = make_result(99, "mine.com")
    custom.is_custom_url = True
    ranked = [make_result(1, "a.com"), make_result(99, "mine.com"), make_result(2, "b.com")]

    first = store.replace_all(ranked, pinned=[custom])

    assert [r.url for r in first] == [custom.url, "https://a.com/page/1"]
    assert store.state.total_results == 3


@pytest.mark.asyncio
async def test_navigate_returns_cached_page_without_fetching():
    store = PaginationStore(page_size=10)
    store.put_page(2, [make_result(1)], total_results=50)
    fetch = AsyncMock()

    page = await store.navigate(2, fetch)

    assert [r.id for r in page] == ["r1"]
    assert store.state.current_page == 2
    fetch.assert_not_awaited()


@pytest.mark.asyncio
async def test_navigate_fetches_absent_page_and_updates_totals():
    store = PaginationStore(page_size=10)
    store.put_page(1, [make_result(i) for i in range(10)], total_results=35)
    fetch = AsyncMock(return_value=_page([make_result(i) for i in range(10, 20)], 35, n=3))

    page = await store.navigate(3, fetch)

    fetch.assert_awaited_once_with(3)
    assert len(page) == 10
    assert store.state.current_page == 3
    assert store.state.total_results == 35
    assert store.state.total_pages == 4


@pytest.mark.asyncio
async def test_navigate_beyond_prioritized_results_is_rejected():
    store = PaginationStore(page_size=10)
    store.replace_all([make_result(i, f"s{i}.com") for i in range(5)])

    with pytest.raises(ValidationError):
        await store.navigate(2, AsyncMock())


def test_reported_total_is_never_below_materialized_count():
    store = PaginationStore(page_size=5)
    store.put_page(1, [make_result(i) for i in range(5)], total_results=3)
    assert store.state.total_results == 5
    assert store.state.total_pages == 1


def test_pages_snapshot_is_isolated_from_later_writes():
    store = PaginationStore(page_size=5)
    store.put_page(1, [make_result(1)])
    snapshot = store.pages
    store.put_page(2, [make_result(2)])
    assert sorted(snapshot) == [1]
    assert [r.id for r in store.all_results()] == ["r1", "r2"]


def test_reset_clears_pages_and_state():
    store = PaginationStore(page_size=5)
    store.replace_all([make_result(1)])
    store.reset("next-session")
    assert store.pages == {}
    assert store.session_key == "next-session"
    assert not store.state.results_prioritized
    assert store.state.to_dict()["totalPages"] == 0
