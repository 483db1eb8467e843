from __future__ import annotations

import json
from dataclasses import replace

import pytest

from searchscope.config import load_settings
from searchscope.exceptions import SearchScopeError
from searchscope.models.schemas import ProviderId, ProviderResponse, SearchFilters, SearchResult
from searchscope.tools.content_fetcher import FetchedContent
from searchscope.tools.provider_base import ProviderAdapter


@pytest.fixture
def settings():
    return load_settings(
        _env_file=None,
        retry_base_delay_seconds=0.0,
        pubmed_batch_delay_seconds=0.0,
        google_api_key="google-key",
        google_cse_id="cse-id",
        brave_api_key="brave-key",
        tavily_api_key="tavily-key",
        openai_api_key="openai-key",
    )


def make_result(i: int, host: str = "example.org", source: str = "google") -> SearchResult:
    return SearchResult(
        id=f"r{i}",
        url=f"https://{host}/page/{i}",
        name=f"Result {i}",
        snippet=f"Snippet {i}",
        source=source,
    )


class FakeAdapter(ProviderAdapter):
    """Serves a fixed result list page by page; raises queued errors first."""

    def __init__(self, settings, provider_id, results=(), total=None, errors=()):
        super().__init__(settings)
        self.provider_id = provider_id
        self.results = list(results)
        self.total = len(self.results) if total is None else total
        self.errors = list(errors)
        self.calls: list[int] = []

    async def _search(self, query: str, filters: SearchFilters) -> ProviderResponse:
        self.calls.append(filters.page)
        if self.errors:
            raise self.errors.pop(0)
        start = (filters.page - 1) * filters.page_size
        page = [replace(r) for r in self.results[start : start + filters.page_size]]
        return ProviderResponse(results=page, total_results=self.total, provider=self.provider_id)


class FakeLLM:
    """Returns queued responses in order; dicts are sent as JSON text."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.model_ids: list[str | None] = []

    async def generate(self, prompt: str, model_id: str | None = None) -> str:
        self.prompts.append(prompt)
        self.model_ids.append(model_id)
        if not self.responses:
            raise AssertionError("FakeLLM called more times than expected")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


class FakeFetcher:
    """Content by URL; URLs mapped to an exception raise it."""

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.calls: list[str] = []

    async def fetch(self, url: str, *, client_key: str = "global") -> FetchedContent:
        self.calls.append(url)
        outcome = self.pages.get(url, f"Full text of {url}")
        if isinstance(outcome, SearchScopeError):
            raise outcome
        return FetchedContent(url=url, content=outcome, title="", method="fake")


@pytest.fixture
def google_adapter(settings):
    return FakeAdapter(settings, ProviderId.GOOGLE, [make_result(i) for i in range(3)], total=30)
