from __future__ import annotations

from typing import Any

from searchscope.models.agent import AgentStage, FetchStatus
from searchscope.models.events import EventType, SSEEvent
from searchscope.models.schemas import Report, SearchResult, results_to_dicts


def stage_changed(stage: AgentStage, **kwargs: Any) -> SSEEvent:
    return SSEEvent(event=EventType.STAGE_CHANGED, data={"stage": stage.value, **kwargs})


def insight(text: str) -> SSEEvent:
    return SSEEvent(event=EventType.INSIGHT, data={"insight": text})


def search_result(query: str, results: list[SearchResult], *, total_results: int) -> SSEEvent:
    return SSEEvent(
        event=EventType.SEARCH_RESULT,
        data={
            "query": query,
            "results": results_to_dicts(results),
            "total_results": total_results,
        },
    )


def ranking_complete(analysis: str, results: list[SearchResult]) -> SSEEvent:
    return SSEEvent(
        event=EventType.RANKING_COMPLETE,
        data={
            "analysis": analysis,
            "scores": {r.url: r.score for r in results},
        },
    )


def selection_made(selected: list[SearchResult], *, unique_hosts: int) -> SSEEvent:
    return SSEEvent(
        event=EventType.SELECTION_MADE,
        data={
            "selected_ids": [r.id for r in selected],
            "urls": [r.url for r in selected],
            "unique_hosts": unique_hosts,
        },
    )


def fetch_status(status: FetchStatus) -> SSEEvent:
    return SSEEvent(event=EventType.FETCH_STATUS, data=status.to_dict())


def report_ready(report: Report, runtime_ms: int | None = None) -> SSEEvent:
    data: dict[str, Any] = {"report": report.model_dump(by_alias=True, exclude_none=True)}
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return SSEEvent(event=EventType.REPORT_READY, data=data)


def error(message: str, *, kind: str | None = None, stage: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if kind:
        data["kind"] = kind
    if stage:
        data["stage"] = stage
    return SSEEvent(event=EventType.ERROR, data=data)
