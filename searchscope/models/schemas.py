from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from searchscope.exceptions import ValidationError


class ProviderId(str, Enum):
    GOOGLE = "google"  # primary web
    BRAVE = "brave"  # secondary web
    TAVILY = "tavily"  # tertiary web
    PUBMED = "pubmed"  # biomedical literature


class TimeWindow(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    SIX_MONTHS = "6months"
    TWELVE_MONTHS = "12months"
    FIVE_YEARS = "5years"
    TEN_YEARS = "10years"
    ALL = "all"


# Narrowest first; used to find the closest coarser native window.
TIME_WINDOW_ORDER: tuple[TimeWindow, ...] = (
    TimeWindow.DAY,
    TimeWindow.WEEK,
    TimeWindow.MONTH,
    TimeWindow.SIX_MONTHS,
    TimeWindow.TWELVE_MONTHS,
    TimeWindow.FIVE_YEARS,
    TimeWindow.TEN_YEARS,
    TimeWindow.ALL,
)


@dataclass(frozen=True)
class SearchFilters:
    time_window: TimeWindow = TimeWindow.ALL
    page: int = 1
    page_size: int = 10

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError(f"Page must be >= 1, got {self.page}")
        if self.page_size < 1:
            raise ValidationError(f"Page size must be >= 1, got {self.page_size}")

    def for_page(self, page: int) -> "SearchFilters":
        return replace(self, page=page)


@dataclass
class SearchResult:
    """Normalized search result shared by every provider."""

    id: str
    url: str
    name: str
    snippet: str = ""
    source: str = ""
    score: float | None = None
    reasoning: str | None = None
    content: str | None = None
    authors: list[str] = field(default_factory=list)
    journal: str | None = None
    pub_date: str | None = None
    pmid: str | None = None
    is_custom_url: bool = False
    is_pubmed: bool = False
    provider_ref: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "snippet": self.snippet,
            "source": self.source,
            "isCustomUrl": self.is_custom_url,
            "isPubMed": self.is_pubmed,
        }
        optional = {
            "score": self.score,
            "reasoning": self.reasoning,
            "content": self.content,
            "journal": self.journal,
            "pubDate": self.pub_date,
            "pmid": self.pmid,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.authors:
            data["authors"] = list(self.authors)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchResult":
        url = data.get("url")
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("Search result is missing a url")
        score = data.get("score")
        return cls(
            id=str(data.get("id") or url),
            url=url,
            name=str(data.get("name") or data.get("title") or ""),
            snippet=str(data.get("snippet") or ""),
            source=str(data.get("source") or ""),
            score=float(score) if isinstance(score, (int, float)) else None,
            reasoning=data.get("reasoning"),
            content=data.get("content"),
            authors=list(data.get("authors") or []),
            journal=data.get("journal"),
            pub_date=data.get("pubDate"),
            pmid=data.get("pmid"),
            is_custom_url=bool(data.get("isCustomUrl", False)),
            is_pubmed=bool(data.get("isPubMed", False)),
        )


def results_to_dicts(results: list[SearchResult]) -> list[dict[str, Any]]:
    """Convert SearchResult list to JSON-serializable dicts."""
    return [r.to_dict() for r in results]


@dataclass
class ProviderResponse:
    results: list[SearchResult]
    total_results: int
    provider: ProviderId
    skipped_batches: int = 0


@dataclass
class AggregatedPage:
    results: list[SearchResult]
    total_results: int
    current_page: int
    page_size: int
    provider_counts: dict[str, int] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return total_pages_for(self.total_results, self.page_size)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": results_to_dicts(self.results),
            "totalResults": self.total_results,
            "totalPages": self.total_pages,
            "currentPage": self.current_page,
            "providerCounts": dict(self.provider_counts),
        }


def total_pages_for(total_results: int, page_size: int) -> int:
    if total_results <= 0:
        return 0
    return math.ceil(total_results / page_size)


@dataclass
class Article:
    """Content gathered for one selected result before report generation."""

    url: str
    title: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "title": self.title, "content": self.content}


# --- Generation collaborator contracts ---


class RankingResult(BaseModel):
    url: str
    score: float = 0.0
    reasoning: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(score):
            return 0.0
        return min(max(score, 0.0), 1.0)


class RankingResponse(BaseModel):
    rankings: list[RankingResult]
    analysis: str = ""


class ResearchPlan(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    optimized_prompt: str = Field(default="", alias="optimizedPrompt")
    explanation: str = ""
    suggested_structure: list[str] | None = Field(default=None, alias="suggestedStructure")


class ReportSection(BaseModel):
    title: str = ""
    content: str = ""


class ReportSource(BaseModel):
    id: str
    url: str
    name: str = ""


class Report(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    summary: str = ""
    sections: list[ReportSection] = Field(default_factory=list)
    sources: list[ReportSource] = Field(default_factory=list)
    used_sources: list[int] | None = Field(default=None, alias="usedSources")
