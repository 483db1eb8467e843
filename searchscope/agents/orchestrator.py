from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import AsyncGenerator, Sequence
from uuid import uuid4

from loguru import logger

from searchscope.agents.planner import QueryPlanner
from searchscope.agents.ranker import Ranker, sort_by_score
from searchscope.agents.reporter import ReportGenerator
from searchscope.agents.selector import DiversitySelector, unique_hosts
from searchscope.config import Settings
from searchscope.exceptions import (
    NoRelevantResultsError,
    NoResultsError,
    RateLimitedError,
    SearchScopeError,
    UpstreamError,
    ValidationError,
)
from searchscope.llm_client import LLMClient, TextGenerator
from searchscope.models.agent import AgentRunState, AgentStage
from searchscope.models.events import EventType, SSEEvent
from searchscope.models.schemas import (
    Article,
    ProviderId,
    ResearchPlan,
    SearchFilters,
    SearchResult,
    TimeWindow,
)
from searchscope.services import logger as log_service
from searchscope.services import streaming
from searchscope.services.aggregator import ResultAggregator, result_key
from searchscope.services.rate_limiter import RateLimiters
from searchscope.services.retry import RetryPolicy
from searchscope.tools.content_fetcher import ContentFetcher
from searchscope.tools.search_provider import build_adapters


def _agent_ids(results: Sequence[SearchResult]) -> list[SearchResult]:
    return [
        replace(r, id=f"search-agent-{index}-{result_key(r)}", score=0.0)
        for index, r in enumerate(results)
    ]


class AgentOrchestrator:
    """Runs plan -> search -> analyze -> select -> generate as one stream.

    One instance serves one run at a time; a second `run` while the first is
    in flight is rejected. Any failure moves the run to ERROR, emits an error
    event and then returns the state to IDLE with partial results dropped.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        planner: QueryPlanner,
        aggregator: ResultAggregator,
        ranker: Ranker,
        selector: DiversitySelector,
        fetcher: ContentFetcher,
        reporter: ReportGenerator,
        retry_policy: RetryPolicy | None = None,
    ):
        self.settings = settings
        self.planner = planner
        self.aggregator = aggregator
        self.ranker = ranker
        self.selector = selector
        self.fetcher = fetcher
        self.reporter = reporter
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self.state = AgentRunState()
        self.last_error: SearchScopeError | None = None
        self._running = False

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        llm: TextGenerator | None = None,
        rate_limiters: RateLimiters | None = None,
    ) -> "AgentOrchestrator":
        llm = llm or LLMClient(settings)
        limiters = rate_limiters or RateLimiters.from_settings(settings)
        return cls(
            settings,
            planner=QueryPlanner(settings, llm),
            aggregator=ResultAggregator(settings, build_adapters(settings)),
            ranker=Ranker(settings, llm),
            selector=DiversitySelector(settings.selection_score_floor),
            fetcher=ContentFetcher(settings, limiters.content_fetch),
            reporter=ReportGenerator(settings, llm),
        )

    @property
    def is_running(self) -> bool:
        return self._running

    def _enter(self, stage: AgentStage) -> SSEEvent:
        self.state.stage = stage
        log_service.log_agent_stage(self.state.run_id, stage.value, "entered")
        return streaming.stage_changed(stage)

    def _insight(self, text: str) -> SSEEvent:
        self.state.add_insight(text)
        return streaming.insight(text)

    async def run(
        self,
        prompt: str,
        *,
        model_id: str | None = None,
        time_window: TimeWindow = TimeWindow.ALL,
        providers: Sequence[ProviderId | str] | None = None,
    ) -> AsyncGenerator[SSEEvent, None]:
        if self._running:
            raise ValidationError("An agent run is already in progress")
        self._running = True
        self.state = AgentRunState(run_id=uuid4().hex)
        self.last_error = None
        started = time.monotonic()
        logger.info(f"Agent run {self.state.run_id} started for '{(prompt or '')[:100]}'")

        try:
            yield self._enter(AgentStage.PLANNING)
            plan = await self.planner.plan(prompt, model_id)
            self.state.search_queries = [plan.query]
            if plan.explanation:
                yield self._insight(f"Research strategy: {plan.explanation}")
            if plan.suggested_structure:
                yield self._insight(f"Suggested structure: {' → '.join(plan.suggested_structure)}")

            yield self._enter(AgentStage.SEARCHING)
            filters = SearchFilters(time_window=time_window, page_size=self.settings.results_per_page)
            page = await self.aggregator.aggregate(plan.query, filters, providers)
            results = _agent_ids(page.results)
            if not results:
                raise NoResultsError()
            self.state.results = results
            yield streaming.search_result(plan.query, results, total_results=page.total_results)

            yield self._enter(AgentStage.ANALYZING)
            response = await self.ranker.rank(plan.query, results, model_id)
            # Results the model left out count as 0 here, not as the display default.
            urls = {r.url for r in results}
            if not any(r.score > 0.0 for r in response.rankings if r.url in urls):
                raise NoRelevantResultsError()
            ranked = sort_by_score(self.ranker.apply_rankings(results, response.rankings))
            self.state.results = ranked
            if response.analysis:
                yield self._insight(f"Analysis: {response.analysis}")
            yield self._insight(f"Found {len(ranked)} relevant results")
            yield streaming.ranking_complete(response.analysis, ranked)

            yield self._enter(AgentStage.SELECTING)
            selected = self.selector.select(ranked, self.settings.max_selectable_results)
            self.state.selected_ids = [r.id for r in selected]
            hosts = unique_hosts(selected)
            yield self._insight(f"Selected {len(selected)} diverse sources from {hosts} unique domains")
            yield streaming.selection_made(selected, unique_hosts=hosts)

            yield self._enter(AgentStage.GENERATING)
            articles = await self._gather_articles(selected)
            yield streaming.fetch_status(self.state.fetch_status)

            report = await self.reporter.generate(
                articles,
                selected,
                self._report_prompt(prompt, plan),
                model_id,
            )
            self.state.report = report
            yield self._insight("Report generated successfully")
            self.state.stage = AgentStage.IDLE
            log_service.log_agent_stage(self.state.run_id, AgentStage.IDLE.value, "completed")
            yield streaming.report_ready(report, runtime_ms=int((time.monotonic() - started) * 1000))
        except Exception as exc:
            async for event in self._fail(exc):
                yield event
        finally:
            self._running = False

    async def _fail(self, exc: Exception) -> AsyncGenerator[SSEEvent, None]:
        failed_stage = self.state.stage
        error = exc if isinstance(exc, SearchScopeError) else UpstreamError(str(exc) or type(exc).__name__)
        error.stage = failed_stage.value
        if isinstance(exc, SearchScopeError):
            logger.error(f"Agent run {self.state.run_id} failed in {failed_stage.value}: {exc}")
        else:
            logger.exception(f"Agent run {self.state.run_id} failed in {failed_stage.value}: {exc}")

        self.last_error = error
        self.state.stage = AgentStage.ERROR
        self.state.error = error.message
        self.state.results = []
        self.state.selected_ids = []
        self.state.report = None
        log_service.log_agent_stage(self.state.run_id, AgentStage.ERROR.value, "failed", error.to_dict())
        yield streaming.stage_changed(AgentStage.ERROR)
        yield streaming.error(error.message, kind=error.kind.value, stage=failed_stage.value)
        self.state.stage = AgentStage.IDLE

    @staticmethod
    def _report_prompt(prompt: str, plan: ResearchPlan) -> str:
        base = (plan.optimized_prompt or prompt).strip()
        return f"{base}. Provide comprehensive analysis."

    async def _gather_articles(self, selected: Sequence[SearchResult]) -> list[Article]:
        status = self.state.fetch_status
        status.total = len(selected)
        outcomes = await asyncio.gather(
            *(self._acquire(result) for result in selected),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, RateLimitedError):
                raise outcome
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        logger.info(
            f"Content fetch: {status.successful}/{status.total} fetched, {status.fallback} preview fallbacks"
        )
        return [article for article in outcomes if article.content]

    async def _acquire(self, result: SearchResult) -> Article:
        status = self.state.fetch_status
        if result.content:
            status.record(result.url, "fetched")
            return Article(url=result.url, title=result.name, content=result.content)
        try:
            fetched = await self.retry_policy.run(
                lambda: self.fetcher.fetch(result.url),
                caller=f"fetch:{result.url}",
            )
        except RateLimitedError:
            raise
        except SearchScopeError as exc:
            logger.warning(f"Falling back to snippet for {result.url}: {exc}")
            status.record(result.url, "preview")
            return Article(url=result.url, title=result.name, content=result.snippet)
        status.record(result.url, "fetched")
        return Article(url=result.url, title=fetched.title or result.name, content=fetched.content)

    async def run_to_completion(
        self,
        prompt: str,
        **kwargs,
    ) -> tuple[AgentRunState, list[SSEEvent]]:
        events = [event async for event in self.run(prompt, **kwargs)]
        return self.state, events


def is_terminal(event: SSEEvent) -> bool:
    return event.event in (EventType.REPORT_READY, EventType.ERROR)
