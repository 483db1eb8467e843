from __future__ import annotations

import pytest

from searchscope.exceptions import MisconfiguredError, RateLimitedError, UpstreamError, ValidationError
from searchscope.models.schemas import ProviderId, SearchFilters
from searchscope.services.aggregator import (
    ResultAggregator,
    dedupe_by_url,
    merge_retained,
)
from conftest import FakeAdapter, make_result


@pytest.mark.asyncio
async def test_test_query_returns_canned_results_without_provider_calls(settings, google_adapter):
    aggregator = ResultAggregator(settings, {ProviderId.GOOGLE: google_adapter})

    page = await aggregator.aggregate("  TEST ", SearchFilters())

    assert [r.name for r in page.results] == ["Test Result 1", "Test Result 2", "Test Result 3"]
    assert [r.url for r in page.results] == [f"https://example.com/test{i}" for i in (1, 2, 3)]
    assert {r.source for r in page.results} == {"test"}
    assert page.total_results == 3
    assert page.total_pages == 1
    assert google_adapter.calls == []


@pytest.mark.asyncio
async def test_blank_query_is_rejected(settings, google_adapter):
    aggregator = ResultAggregator(settings, {ProviderId.GOOGLE: google_adapter})
    with pytest.raises(ValidationError):
        await aggregator.aggregate("   ", SearchFilters())


@pytest.mark.asyncio
async def test_results_merge_in_priority_order_and_totals_sum(settings):
    google = FakeAdapter(settings, ProviderId.GOOGLE, [make_result(i, "g.com") for i in range(2)], total=40)
    pubmed = FakeAdapter(
        settings, ProviderId.PUBMED, [make_result(i, "pubmed.gov", "pubmed") for i in range(2)], total=7
    )
    aggregator = ResultAggregator(settings, {ProviderId.GOOGLE: google, ProviderId.PUBMED: pubmed})

    page = await aggregator.aggregate("sleep", SearchFilters(page=1, page_size=10), ["pubmed", "google"])

    assert [r.source for r in page.results] == ["google", "google", "pubmed", "pubmed"]
    assert page.total_results == 47
    assert page.provider_counts == {"google": 2, "pubmed": 2}
    assert [r.id for r in page.results][0].startswith("search-page1-0-")


@pytest.mark.asyncio
async def test_duplicate_urls_across_providers_keep_the_first(settings):
    shared = make_result(1, "shared.com")
    google = FakeAdapter(settings, ProviderId.GOOGLE, [shared, make_result(2, "g.com")])
    brave = FakeAdapter(settings, ProviderId.BRAVE, [make_result(1, "shared.com", "brave")])
    aggregator = ResultAggregator(settings, {ProviderId.GOOGLE: google, ProviderId.BRAVE: brave})

    page = await aggregator.aggregate("query", SearchFilters(), ["google", "brave"])

    assert [r.url for r in page.results] == [shared.url, "https://g.com/page/2"]
    assert page.results[0].source == "google"


@pytest.mark.asyncio
async def test_secondary_provider_failure_is_tolerated(settings, google_adapter):
    pubmed = FakeAdapter(settings, ProviderId.PUBMED, errors=[UpstreamError("eutils down")])
    aggregator = ResultAggregator(settings, {ProviderId.GOOGLE: google_adapter, ProviderId.PUBMED: pubmed})

    page = await aggregator.aggregate("query", SearchFilters(), ["google", "pubmed"])

    assert len(page.results) == 3
    assert page.provider_counts == {"google": 3, "pubmed": 0}


@pytest.mark.asyncio
async def test_primary_provider_failure_fails_the_call(settings):
    google = FakeAdapter(settings, ProviderId.GOOGLE, errors=[MisconfiguredError("no key")])
    pubmed = FakeAdapter(settings, ProviderId.PUBMED, [make_result(1, "pubmed.gov", "pubmed")])
    aggregator = ResultAggregator(settings, {ProviderId.GOOGLE: google, ProviderId.PUBMED: pubmed})

    with pytest.raises(MisconfiguredError):
        await aggregator.aggregate("query", SearchFilters(), ["google", "pubmed"])


@pytest.mark.asyncio
async def test_rate_limited_provider_call_is_retried(settings):
    google = FakeAdapter(settings, ProviderId.GOOGLE, [make_result(1)], errors=[RateLimitedError()])
    aggregator = ResultAggregator(settings, {ProviderId.GOOGLE: google})

    page = await aggregator.aggregate("query", SearchFilters())

    assert google.calls == [1, 1]
    assert len(page.results) == 1


@pytest.mark.asyncio
async def test_unavailable_provider_is_a_validation_error(settings, google_adapter):
    aggregator = ResultAggregator(settings, {ProviderId.GOOGLE: google_adapter})
    with pytest.raises(ValidationError):
        await aggregator.aggregate("query", SearchFilters(), ["tavily"])


def test_dedupe_is_idempotent():
    results = [make_result(1, "a.com"), make_result(1, "a.com"), make_result(2, "b.com")]
    once = dedupe_by_url(results)
    assert [r.url for r in once] == ["https://a.com/page/1", "https://b.com/page/2"]
    assert dedupe_by_url(once) == once


@pytest.mark.asyncio
async def test_fetch_all_with_empty_first_page_stops_immediately(settings):
    google = FakeAdapter(settings, ProviderId.GOOGLE, [], total=0)
    aggregator = ResultAggregator(settings, {ProviderId.GOOGLE: google})

    page = await aggregator.fetch_all("nothing matches", SearchFilters(page_size=10))

    assert page.results == []
    assert page.total_pages == 0
    assert google.calls == [1]


@pytest.mark.asyncio
async def test_fetch_all_stops_at_first_short_page(settings):
    results = [make_result(i, f"site{i}.com") for i in range(25)]
    google = FakeAdapter(settings, ProviderId.GOOGLE, results, total=500)
    aggregator = ResultAggregator(settings.model_copy(update={"fetch_all_max_parallel": 1}), {ProviderId.GOOGLE: google})

    page = await aggregator.fetch_all("query", SearchFilters(page_size=10))

    assert google.calls == [1, 2, 3]
    assert len(page.results) == 25
    assert page.total_results == 25


@pytest.mark.asyncio
async def test_fetch_all_caps_materialized_results(settings):
    results = [make_result(i, f"site{i}.com") for i in range(150)]
    google = FakeAdapter(settings, ProviderId.GOOGLE, results, total=150)
    aggregator = ResultAggregator(settings, {ProviderId.GOOGLE: google})

    page = await aggregator.fetch_all("query", SearchFilters(page_size=10))

    assert len(page.results) == 100
    assert sorted(google.calls) == list(range(1, 11))
    assert len({r.url for r in page.results}) == 100


def test_merge_retained_keeps_selected_and_custom_first():
    kept = make_result(1, "kept.com")
    custom = make_result(2, "mine.com")
    custom.is_custom_url = True
    dropped = make_result(3, "old.com")
    incoming = [make_result(9, "kept.com"), make_result(4, "new.com")]
    incoming[0].url = kept.url

    merged = merge_retained([kept, custom, dropped], incoming, selected_ids={kept.id})

    assert [r.url for r in merged] == [kept.url, custom.url, "https://new.com/page/4"]
