from __future__ import annotations

from loguru import logger

from searchscope.config import Settings
from searchscope.exceptions import ValidationError
from searchscope.llm_client import TextGenerator
from searchscope.models.schemas import ResearchPlan
from searchscope.services.aggregator import TEST_QUERY, is_test_query
from searchscope.services.json_extract import parse_model
from searchscope.services.prompt_store import render_prompt
from searchscope.services.retry import RetryPolicy


class QueryPlanner:
    """Turns a research prompt into a search query and report outline."""

    def __init__(self, settings: Settings, llm: TextGenerator, retry_policy: RetryPolicy | None = None):
        self.settings = settings
        self.llm = llm
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)

    async def plan(self, prompt: str, model_id: str | None = None) -> ResearchPlan:
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt is required")
        if is_test_query(prompt):
            return ResearchPlan(
                query=TEST_QUERY,
                optimized_prompt=TEST_QUERY,
                explanation="Test run using canned results.",
            )

        raw = await self.retry_policy.run(
            lambda: self.llm.generate(render_prompt("planner.prompt", prompt=prompt), model_id),
            caller="planner",
        )
        plan = parse_model(raw, ResearchPlan)
        if not plan.query.strip():
            plan.query = prompt
        if not plan.optimized_prompt.strip():
            plan.optimized_prompt = prompt
        logger.info(f"Planned query '{plan.query}' for prompt '{prompt[:80]}'")
        return plan
