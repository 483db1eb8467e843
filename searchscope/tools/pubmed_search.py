"""PubMed adapter over the NCBI E-utilities (esearch + esummary).

Summaries are requested in small batches with a pause between them to stay
under the NCBI request rate. Each batch is retried with jittered backoff;
a batch that still fails is skipped so the rest of the page survives.
"""
from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from searchscope.exceptions import RateLimitedError, SearchScopeError, UpstreamError
from searchscope.models.schemas import (
    ProviderId,
    ProviderResponse,
    SearchFilters,
    SearchResult,
    TimeWindow,
)
from searchscope.services.retry import RetryPolicy
from searchscope.tools.mesh_query import build_mesh_query
from searchscope.tools.provider_base import ProviderAdapter, fetch_json

EUTILS_BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
PUBMED_ARTICLE_URL = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"

MAX_LISTED_AUTHORS = 3


def pubmed_retry_policy(max_attempts: int = 3) -> RetryPolicy:
    """Rate limits wait 2^(n+1)s, other failures 2^n * 0.5s, both with jitter."""
    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay=0.5,
        jitter=0.5,
        retry_on=(RateLimitedError, UpstreamError),
        rate_limited_base_delay=2.0,
    )


def format_snippet(authors: list[str], journal: str, pub_date: str) -> str:
    author_text = ", ".join(authors[:MAX_LISTED_AUTHORS])
    if len(authors) > MAX_LISTED_AUTHORS:
        author_text += " et al."
    parts = [p.rstrip(".") for p in (author_text, journal) if p]
    if pub_date:
        parts.append(f"Published: {pub_date}")
    return ". ".join(parts)


class PubMedSearchAdapter(ProviderAdapter):
    provider_id = ProviderId.PUBMED
    # Relative-date window in days for esearch's reldate.
    time_windows = {
        TimeWindow.DAY: 1,
        TimeWindow.WEEK: 7,
        TimeWindow.MONTH: 30,
        TimeWindow.SIX_MONTHS: 182,
        TimeWindow.TWELVE_MONTHS: 365,
        TimeWindow.FIVE_YEARS: 1826,
        TimeWindow.TEN_YEARS: 3652,
    }

    def _common_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"db": "pubmed", "retmode": "json"}
        if self.settings.pubmed_api_key:
            params["api_key"] = self.settings.pubmed_api_key
        if self.settings.pubmed_email:
            params["email"] = self.settings.pubmed_email
        if self.settings.pubmed_tool:
            params["tool"] = self.settings.pubmed_tool
        return params

    def _retry_policy(self) -> RetryPolicy:
        return pubmed_retry_policy(max(int(self.settings.retry_max_attempts), 1))

    async def _esearch(self, term: str, filters: SearchFilters) -> tuple[list[str], int]:
        params = self._common_params()
        params.update(
            {
                "term": term,
                "retstart": (filters.page - 1) * filters.page_size,
                "retmax": filters.page_size,
                "sort": "relevance",
            }
        )
        reldate = self.native_time_filter(filters.time_window)
        if reldate:
            params["datetype"] = "pdat"
            params["reldate"] = reldate

        payload = await self._retry_policy().run(
            lambda: fetch_json(
                self.provider_id,
                f"{EUTILS_BASE_URL}/esearch.fcgi",
                params=params,
                timeout=self.settings.http_timeout_seconds,
            ),
            caller="pubmed:esearch",
        )
        result = payload.get("esearchresult", {}) if isinstance(payload, dict) else {}
        if "ERROR" in result:
            raise UpstreamError(f"pubmed esearch error: {result['ERROR']}")
        ids = [str(pmid) for pmid in result.get("idlist", []) or []]
        try:
            count = int(result.get("count", 0))
        except (TypeError, ValueError):
            count = len(ids)
        return ids, count

    async def _esummary(self, pmids: list[str]) -> dict[str, Any]:
        params = self._common_params()
        params["id"] = ",".join(pmids)
        payload = await self._retry_policy().run(
            lambda: fetch_json(
                self.provider_id,
                f"{EUTILS_BASE_URL}/esummary.fcgi",
                params=params,
                timeout=self.settings.http_timeout_seconds,
            ),
            caller="pubmed:esummary",
        )
        return payload.get("result", {}) if isinstance(payload, dict) else {}

    def _to_result(self, pmid: str, summary: dict[str, Any]) -> SearchResult:
        authors = [
            a.get("name", "")
            for a in summary.get("authors", []) or []
            if isinstance(a, dict) and a.get("name")
        ]
        journal = summary.get("fulljournalname") or summary.get("source") or ""
        pub_date = summary.get("pubdate") or ""
        return SearchResult(
            id=f"pubmed-{pmid}",
            url=PUBMED_ARTICLE_URL.format(pmid=pmid),
            name=summary.get("title", "") or f"PubMed article {pmid}",
            snippet=format_snippet(authors, journal, pub_date),
            source=self.provider_id.value,
            authors=authors[:MAX_LISTED_AUTHORS],
            journal=journal or None,
            pub_date=pub_date or None,
            pmid=pmid,
            is_pubmed=True,
            provider_ref=pmid,
        )

    async def _search(self, query: str, filters: SearchFilters) -> ProviderResponse:
        term = build_mesh_query(query)
        if len(term) < 2:
            return ProviderResponse(results=[], total_results=0, provider=self.provider_id)

        pmids, count = await self._esearch(term, filters)
        logger.debug(f"PubMed esearch '{term}' -> {len(pmids)} ids (count={count})")

        batch_size = max(int(self.settings.pubmed_batch_size), 1)
        results: list[SearchResult] = []
        skipped = 0
        for offset in range(0, len(pmids), batch_size):
            if offset:
                await asyncio.sleep(self.settings.pubmed_batch_delay_seconds)
            batch = pmids[offset : offset + batch_size]
            try:
                summaries = await self._esummary(batch)
            except SearchScopeError as exc:
                skipped += 1
                logger.error(f"PubMed summary batch {offset // batch_size + 1} skipped: {exc}")
                continue
            for pmid in batch:
                summary = summaries.get(pmid)
                if isinstance(summary, dict) and not summary.get("error"):
                    results.append(self._to_result(pmid, summary))

        return ProviderResponse(
            results=results,
            total_results=count,
            provider=self.provider_id,
            skipped_batches=skipped,
        )
