from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from searchscope.models.schemas import TimeWindow


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SearchRequest(_CamelModel):
    query: str
    time_filter: TimeWindow = Field(default=TimeWindow.ALL, alias="timeFilter")
    provider: str | None = None
    page: int = Field(default=1, ge=1)
    page_size: int | None = Field(default=None, ge=1, le=50, alias="pageSize")
    include_pubmed: bool = Field(default=False, alias="includePubMed")


class AnalyzeRequest(_CamelModel):
    prompt: str
    results: list[dict[str, Any]]
    platform_model: str | None = Field(default=None, alias="platformModel")


class FetchContentRequest(_CamelModel):
    url: str


class ReportRequest(_CamelModel):
    prompt: str
    selected_results: list[dict[str, Any]] = Field(alias="selectedResults")
    sources: list[dict[str, Any]] | None = None
    platform_model: str | None = Field(default=None, alias="platformModel")


class AgentRequest(_CamelModel):
    prompt: str
    platform_model: str | None = Field(default=None, alias="platformModel")
    time_filter: TimeWindow = Field(default=TimeWindow.ALL, alias="timeFilter")
    providers: list[str] | None = None
    include_pubmed: bool = Field(default=False, alias="includePubMed")


class DownloadRequest(_CamelModel):
    report: dict[str, Any]
    format: str = "txt"
