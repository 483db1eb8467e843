from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from tavily.errors import UsageLimitExceededError

from searchscope.exceptions import (
    MisconfiguredError,
    QuotaExceededError,
    RateLimitedError,
    UpstreamError,
    ValidationError,
)
from searchscope.models.schemas import ProviderId, SearchFilters, TimeWindow
from searchscope.tools.brave_search import BraveSearchAdapter
from searchscope.tools.google_search import GoogleSearchAdapter
from searchscope.tools.provider_base import map_time_window, raise_for_status
from searchscope.tools.pubmed_search import PubMedSearchAdapter, format_snippet
from searchscope.tools.search_provider import build_adapters, order_by_priority, resolve_provider
from searchscope.tools.tavily_search import TavilySearchAdapter


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=""):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        return self._payload


class FakeClient:
    """Records GET calls; `route` maps a request to a FakeResponse."""

    def __init__(self, route):
        self.route = route
        self.calls: list[tuple[str, dict]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def get(self, url, params=None, headers=None):
        self.calls.append((url, dict(params or {})))
        return self.route(url, params or {})


def test_time_window_maps_to_closest_coarser_native_window():
    assert map_time_window(TimeWindow.SIX_MONTHS, BraveSearchAdapter.time_windows) == "py"
    assert map_time_window(TimeWindow.FIVE_YEARS, BraveSearchAdapter.time_windows) is None
    assert map_time_window(TimeWindow.DAY, GoogleSearchAdapter.time_windows) == "d1"
    assert map_time_window(TimeWindow.SIX_MONTHS, TavilySearchAdapter.time_windows) == "year"
    assert map_time_window(TimeWindow.ALL, GoogleSearchAdapter.time_windows) is None


@pytest.mark.parametrize(
    ("status", "body", "error"),
    [
        (429, "", RateLimitedError),
        (403, '{"error": {"reason": "dailyLimitExceeded"}}', QuotaExceededError),
        (403, "forbidden", MisconfiguredError),
        (401, "", MisconfiguredError),
        (400, "bad", ValidationError),
        (503, "", UpstreamError),
    ],
)
def test_raise_for_status_maps_http_errors_to_kinds(status, body, error):
    with pytest.raises(error):
        raise_for_status(httpx.Response(status, text=body), ProviderId.GOOGLE)


@pytest.mark.asyncio
async def test_google_adapter_builds_params_and_normalizes_items(settings):
    payload = {
        "items": [
            {"title": "One", "link": "https://a.com/1", "snippet": "first", "cacheId": "abc"},
            {"title": "Two", "link": "https://b.com/2", "snippet": "second"},
        ],
        "searchInformation": {"totalResults": "12345"},
    }
    client = FakeClient(lambda url, params: FakeResponse(payload))

    with patch("searchscope.tools.provider_base.httpx.AsyncClient", return_value=client):
        response = await GoogleSearchAdapter(settings).search(
            "query", SearchFilters(time_window=TimeWindow.WEEK, page=2, page_size=10)
        )

    _, params = client.calls[0]
    assert params["start"] == 11
    assert params["num"] == 10
    assert params["dateRestrict"] == "w1"
    assert params["cx"] == "cse-id"
    assert [r.url for r in response.results] == ["https://a.com/1", "https://b.com/2"]
    assert response.results[0].provider_ref == "abc"
    assert response.results[1].provider_ref is None
    assert response.total_results == 100


@pytest.mark.asyncio
async def test_google_pages_larger_than_ten_are_read_in_consecutive_windows(settings):
    def route(url, params):
        start = params["start"]
        items = [{"title": f"R{n}", "link": f"https://r{n}.com"} for n in range(start, start + params["num"])]
        return FakeResponse({"items": items, "searchInformation": {"totalResults": "500"}})

    client = FakeClient(route)
    with patch("searchscope.tools.provider_base.httpx.AsyncClient", return_value=client):
        adapter = GoogleSearchAdapter(settings)
        first = await adapter.search("query", SearchFilters(page=1, page_size=20))
        second = await adapter.search("query", SearchFilters(page=2, page_size=20))

    assert [(p["start"], p["num"]) for _, p in client.calls] == [(1, 10), (11, 10), (21, 10), (31, 10)]
    assert [r.name for r in first.results] == [f"R{n}" for n in range(1, 21)]
    assert [r.name for r in second.results] == [f"R{n}" for n in range(21, 41)]
    assert first.total_results == 100


@pytest.mark.parametrize(
    ("short_start", "windows", "count"),
    [
        (None, [(76, 10), (86, 10), (96, 5)], 25),
        (86, [(76, 10), (86, 10)], 13),
    ],
)
@pytest.mark.asyncio
async def test_google_windows_stop_at_short_reply_and_result_cap(settings, short_start, windows, count):
    def route(url, params):
        size = 3 if params["start"] == short_start else params["num"]
        items = [{"title": "x", "link": f"https://s{params['start']}-{n}.com"} for n in range(size)]
        return FakeResponse({"items": items, "searchInformation": {"totalResults": "95"}})

    client = FakeClient(route)
    with patch("searchscope.tools.provider_base.httpx.AsyncClient", return_value=client):
        response = await GoogleSearchAdapter(settings).search("query", SearchFilters(page=4, page_size=25))

    assert [(p["start"], p["num"]) for _, p in client.calls] == windows
    assert len(response.results) == count
    assert response.total_results == 95


@pytest.mark.asyncio
async def test_google_adapter_requires_credentials(settings):
    adapter = GoogleSearchAdapter(settings.model_copy(update={"google_cse_id": ""}))
    with pytest.raises(MisconfiguredError):
        await adapter.search("query", SearchFilters())


@pytest.mark.asyncio
async def test_brave_adapter_uses_offset_pages_and_snippet_fallback(settings):
    payload = {
        "web": {
            "results": [
                {"title": "Result 1", "url": "https://a.com", "description": "Desc 1"},
                {"title": "Result 2", "url": "https://b.com", "extra_snippets": ["Snippet 2a", "Snippet 2b"]},
            ]
        },
        "query": {"more_results_available": True},
    }
    client = FakeClient(lambda url, params: FakeResponse(payload))

    with patch("searchscope.tools.provider_base.httpx.AsyncClient", return_value=client):
        response = await BraveSearchAdapter(settings).search(
            "query", SearchFilters(time_window=TimeWindow.SIX_MONTHS, page=3, page_size=2)
        )

    _, params = client.calls[0]
    assert params["offset"] == 2
    assert params["count"] == 2
    assert params["freshness"] == "py"
    assert response.results[0].snippet == "Desc 1"
    assert response.results[1].snippet == "Snippet 2a Snippet 2b"
    assert response.total_results == 8


@pytest.mark.asyncio
async def test_brave_rate_limit_surfaces_as_rate_limited(settings):
    client = FakeClient(lambda url, params: FakeResponse(status_code=429))

    with patch("searchscope.tools.provider_base.httpx.AsyncClient", return_value=client):
        with pytest.raises(RateLimitedError):
            await BraveSearchAdapter(settings).search("query", SearchFilters())


@pytest.mark.asyncio
async def test_tavily_adapter_slices_requested_page(settings):
    results = [{"title": f"T{i}", "url": f"https://site{i}.com", "content": f"C{i}"} for i in range(15)]
    tavily = MagicMock()
    tavily.search = AsyncMock(return_value={"results": results})

    with patch("searchscope.tools.tavily_search.AsyncTavilyClient", return_value=tavily):
        response = await TavilySearchAdapter(settings).search(
            "query", SearchFilters(time_window=TimeWindow.TWELVE_MONTHS, page=2, page_size=10)
        )

    kwargs = tavily.search.await_args.kwargs
    assert kwargs["max_results"] == 20
    assert kwargs["time_range"] == "year"
    assert [r.name for r in response.results] == [f"T{i}" for i in range(10, 15)]
    assert response.total_results == 15


@pytest.mark.asyncio
async def test_tavily_usage_limit_maps_to_quota_exceeded(settings):
    tavily = MagicMock()
    tavily.search = AsyncMock(side_effect=UsageLimitExceededError("limit reached"))

    with patch("searchscope.tools.tavily_search.AsyncTavilyClient", return_value=tavily):
        with pytest.raises(QuotaExceededError):
            await TavilySearchAdapter(settings).search("query", SearchFilters())


def _summary(pmid: str) -> dict:
    return {
        "uid": pmid,
        "title": f"Article {pmid}",
        "authors": [{"name": n} for n in ("Smith J", "Doe A", "Lee K", "Kim S")],
        "fulljournalname": "Nature Medicine",
        "pubdate": "2024 Jan",
    }


@pytest.mark.asyncio
async def test_pubmed_adapter_batches_summaries_and_skips_failed_batch(settings):
    pmids = [str(100 + i) for i in range(7)]
    summary_calls = {"count": 0}

    def route(url, params):
        if url.endswith("esearch.fcgi"):
            return FakeResponse({"esearchresult": {"count": "42", "idlist": pmids}})
        summary_calls["count"] += 1
        ids = params["id"].split(",")
        if "105" in ids:
            return FakeResponse(status_code=500)
        return FakeResponse({"result": {pmid: _summary(pmid) for pmid in ids}})

    client = FakeClient(route)
    with (
        patch("searchscope.tools.provider_base.httpx.AsyncClient", return_value=client),
        patch("searchscope.services.retry.asyncio.sleep", new=AsyncMock()),
    ):
        response = await PubMedSearchAdapter(settings).search(
            "type 2 diabetes", SearchFilters(time_window=TimeWindow.MONTH, page=1, page_size=10)
        )

    _, search_params = client.calls[0]
    assert search_params["term"] == '"Diabetes Mellitus, Type 2"[Mesh]'
    assert search_params["reldate"] == 30
    assert search_params["retmax"] == 10
    assert [r.pmid for r in response.results] == pmids[:5]
    assert response.skipped_batches == 1
    assert response.total_results == 42
    # first batch once, second batch attempted three times
    assert summary_calls["count"] == 4

    first = response.results[0]
    assert first.url == "https://pubmed.ncbi.nlm.nih.gov/100/"
    assert first.is_pubmed
    assert first.snippet == "Smith J, Doe A, Lee K et al. Nature Medicine. Published: 2024 Jan"


def test_format_snippet_without_author_overflow():
    assert format_snippet(["A B"], "", "2020") == "A B. Published: 2020"


def test_registry_builds_one_adapter_per_provider(settings):
    adapters = build_adapters(settings)
    assert set(adapters) == set(ProviderId)
    assert isinstance(adapters[ProviderId.PUBMED], PubMedSearchAdapter)


def test_provider_resolution_and_priority(settings):
    assert resolve_provider(" Brave ") == ProviderId.BRAVE
    with pytest.raises(ValidationError):
        resolve_provider("bing")
    ordered = order_by_priority([ProviderId.PUBMED, ProviderId.GOOGLE, ProviderId.PUBMED], settings)
    assert ordered == [ProviderId.GOOGLE, ProviderId.PUBMED]
