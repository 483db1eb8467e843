from __future__ import annotations

from typing import Sequence

from searchscope.exceptions import SelectionEmptyError
from searchscope.models.schemas import SearchResult
from searchscope.tools.web_utils import extract_host


class DiversitySelector:
    """Picks at most one result per hostname, best scores first."""

    def __init__(self, score_floor: float = 0.5):
        self.score_floor = score_floor

    def select(
        self,
        ranked: Sequence[SearchResult],
        max_count: int,
        score_floor: float | None = None,
    ) -> list[SearchResult]:
        floor = self.score_floor if score_floor is None else score_floor
        selected: list[SearchResult] = []
        hosts: set[str] = set()
        for result in sorted(ranked, key=lambda r: r.score or 0.0, reverse=True):
            if len(selected) >= max_count:
                break
            if (result.score or 0.0) <= floor:
                continue
            host = extract_host(result.url)
            if not host or host in hosts:
                continue
            hosts.add(host)
            selected.append(result)

        if not selected:
            raise SelectionEmptyError()
        return selected


def unique_hosts(results: Sequence[SearchResult]) -> int:
    return len({extract_host(r.url) for r in results})
