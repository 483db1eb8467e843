from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from searchscope.api.deps import Services, client_key, get_services
from searchscope.api.requests import AnalyzeRequest, FetchContentRequest, SearchRequest
from searchscope.exceptions import ValidationError
from searchscope.models.schemas import ProviderId, SearchFilters, SearchResult
from searchscope.services import logger as log_service
from searchscope.services.rate_limiter import enforce

router = APIRouter(prefix="/api", tags=["search"])


@router.post("/search")
async def search(body: SearchRequest, request: Request, services: Services = Depends(get_services)):
    """One page of merged results across the requested providers."""
    await enforce(services.limiters.search, client_key(request), what="search")

    settings = services.settings
    providers: list[ProviderId | str] = [body.provider or settings.default_provider]
    if body.include_pubmed:
        providers.append(ProviderId.PUBMED)
    filters = SearchFilters(
        time_window=body.time_filter,
        page=body.page,
        page_size=body.page_size or settings.results_per_page,
    )
    page = await services.aggregator.aggregate(body.query, filters, providers)
    log_service.log_event(
        event_type="search",
        message="Search completed",
        query=body.query[:100],
        page=body.page,
        provider_counts=page.provider_counts,
    )
    return page.to_dict()


@router.post("/analyze-results")
async def analyze_results(body: AnalyzeRequest, services: Services = Depends(get_services)):
    if not body.prompt.strip():
        raise ValidationError("Prompt is required")
    candidates = [SearchResult.from_dict(item) for item in body.results]
    outcome = await services.ranker.score(body.prompt, candidates, body.platform_model)
    rankings = [{"url": r.url, "score": r.score, "reasoning": r.reasoning} for r in outcome.results]
    return {"rankings": rankings, "analysis": outcome.analysis}


@router.post("/fetch-content")
async def fetch_content(body: FetchContentRequest, request: Request, services: Services = Depends(get_services)):
    fetched = await services.fetcher.fetch(body.url, client_key=client_key(request))
    return {"content": fetched.content, "title": fetched.title}
