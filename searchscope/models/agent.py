from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from searchscope.models.schemas import Report, SearchResult


class AgentStage(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    SEARCHING = "searching"
    ANALYZING = "analyzing"
    SELECTING = "selecting"
    GENERATING = "generating"
    ERROR = "error"


FetchOutcome = Literal["fetched", "preview"]


@dataclass
class FetchStatus:
    total: int = 0
    successful: int = 0
    fallback: int = 0
    source_statuses: dict[str, FetchOutcome] = field(default_factory=dict)

    def record(self, url: str, outcome: FetchOutcome) -> None:
        if outcome == "fetched":
            self.successful += 1
        else:
            self.fallback += 1
        self.source_statuses[url] = outcome

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "successful": self.successful,
            "fallback": self.fallback,
            "sourceStatuses": dict(self.source_statuses),
        }


@dataclass
class AgentRunState:
    """State owned by exactly one in-flight agent run."""

    run_id: str = ""
    stage: AgentStage = AgentStage.IDLE
    insights: list[str] = field(default_factory=list)
    search_queries: list[str] = field(default_factory=list)
    results: list[SearchResult] = field(default_factory=list)
    selected_ids: list[str] = field(default_factory=list)
    fetch_status: FetchStatus = field(default_factory=FetchStatus)
    report: Report | None = None
    error: str | None = None

    def add_insight(self, text: str) -> None:
        self.insights.append(text)
