from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from searchscope.agents.orchestrator import AgentOrchestrator
from searchscope.agents.planner import QueryPlanner
from searchscope.agents.ranker import Ranker
from searchscope.agents.reporter import ReportGenerator
from searchscope.agents.selector import DiversitySelector
from searchscope.config import Settings
from searchscope.llm_client import LLMClient, TextGenerator
from searchscope.services.aggregator import ResultAggregator
from searchscope.services.rate_limiter import RateLimiters
from searchscope.tools.content_fetcher import ContentFetcher
from searchscope.tools.search_provider import build_adapters


@dataclass
class Services:
    """Long-lived collaborators shared by every request."""

    settings: Settings
    llm: TextGenerator
    aggregator: ResultAggregator
    ranker: Ranker
    reporter: ReportGenerator
    fetcher: ContentFetcher
    limiters: RateLimiters

    def new_orchestrator(self) -> AgentOrchestrator:
        # One orchestrator per run keeps run state unshared between requests.
        return AgentOrchestrator(
            self.settings,
            planner=QueryPlanner(self.settings, self.llm),
            aggregator=self.aggregator,
            ranker=self.ranker,
            selector=DiversitySelector(self.settings.selection_score_floor),
            fetcher=self.fetcher,
            reporter=self.reporter,
        )


def build_services(settings: Settings, *, llm: TextGenerator | None = None) -> Services:
    llm = llm or LLMClient(settings)
    limiters = RateLimiters.from_settings(settings)
    return Services(
        settings=settings,
        llm=llm,
        aggregator=ResultAggregator(settings, build_adapters(settings)),
        ranker=Ranker(settings, llm),
        reporter=ReportGenerator(settings, llm),
        fetcher=ContentFetcher(settings, limiters.content_fetch),
        limiters=limiters,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "anonymous"
