from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from loguru import logger

from searchscope.config import Settings
from searchscope.exceptions import ValidationError
from searchscope.llm_client import TextGenerator
from searchscope.models.schemas import RankingResponse, RankingResult, SearchResult
from searchscope.services.aggregator import is_test_query
from searchscope.services.json_extract import parse_model
from searchscope.services.prompt_store import render_prompt
from searchscope.services.retry import RetryPolicy
from searchscope.tools.web_utils import is_test_url

UNSCORED_REASONING = (
    "This result was not explicitly scored by the AI. It may be less relevant to your query."
)
CANDIDATE_CONTENT_CHARS = 1500


def is_test_candidate_set(candidates: Sequence[SearchResult]) -> bool:
    return bool(candidates) and all(is_test_url(c.url) for c in candidates)


def canned_rankings(candidates: Sequence[SearchResult]) -> RankingResponse:
    return RankingResponse(
        rankings=[
            RankingResult(
                url=c.url,
                score=max(0.9 - 0.1 * i, 0.6),
                reasoning=f"Test ranking {i + 1}",
            )
            for i, c in enumerate(candidates)
        ],
        analysis="Test analysis: rankings were produced without calling a model.",
    )


def _candidate_payload(candidates: Sequence[SearchResult]) -> list[dict[str, str]]:
    payload = []
    for c in candidates:
        item = {"title": c.name, "url": c.url, "snippet": c.snippet}
        if c.content:
            item["content"] = c.content[:CANDIDATE_CONTENT_CHARS]
        payload.append(item)
    return payload


@dataclass
class RankingOutcome:
    results: list[SearchResult]
    analysis: str


class Ranker:
    """Relevance scoring of search results by a text-generation model."""

    def __init__(self, settings: Settings, llm: TextGenerator, retry_policy: RetryPolicy | None = None):
        self.settings = settings
        self.llm = llm
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)

    async def rank(
        self,
        query: str,
        candidates: Sequence[SearchResult],
        model_id: str | None = None,
    ) -> RankingResponse:
        if not candidates:
            raise ValidationError("No results to rank")
        if is_test_query(query) or is_test_candidate_set(candidates):
            logger.info(f"Returning canned rankings for {len(candidates)} test candidates")
            return canned_rankings(candidates)

        prompt = render_prompt("ranker.prompt", query=query, candidates=_candidate_payload(candidates))
        raw = await self.retry_policy.run(
            lambda: self.llm.generate(prompt, model_id),
            caller="ranker",
        )
        response = parse_model(raw, RankingResponse)
        logger.info(f"Ranker scored {len(response.rankings)}/{len(candidates)} candidates")
        return response

    def apply_rankings(
        self,
        candidates: Sequence[SearchResult],
        rankings: Sequence[RankingResult],
    ) -> list[SearchResult]:
        """Attach scores by URL; candidates the model skipped get the default."""
        by_url: dict[str, RankingResult] = {}
        for ranking in rankings:
            by_url.setdefault(ranking.url, ranking)

        scored: list[SearchResult] = []
        for candidate in candidates:
            ranking = by_url.get(candidate.url)
            if ranking is None:
                scored.append(
                    replace(
                        candidate,
                        score=self.settings.unscored_default_score,
                        reasoning=UNSCORED_REASONING,
                    )
                )
            else:
                scored.append(replace(candidate, score=ranking.score, reasoning=ranking.reasoning))
        return scored

    async def score(
        self,
        query: str,
        candidates: Sequence[SearchResult],
        model_id: str | None = None,
    ) -> RankingOutcome:
        response = await self.rank(query, candidates, model_id)
        return RankingOutcome(
            results=self.apply_rankings(candidates, response.rankings),
            analysis=response.analysis,
        )


def sort_by_score(results: Sequence[SearchResult]) -> list[SearchResult]:
    return sorted(results, key=lambda r: r.score or 0.0, reverse=True)
