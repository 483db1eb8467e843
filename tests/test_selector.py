from __future__ import annotations

import pytest

from searchscope.agents.selector import DiversitySelector, unique_hosts
from searchscope.exceptions import SelectionEmptyError
from conftest import make_result


def _scored(i, host, score):
    result = make_result(i, host)
    result.score = score
    return result


def test_one_result_per_host_best_score_first():
    ranked = [
        _scored(1, "a.com", 0.7),
        _scored(2, "a.com", 0.95),
        _scored(3, "b.com", 0.8),
        _scored(4, "www.c.com", 0.6),
    ]

    selected = DiversitySelector().select(ranked, max_count=10)

    assert [r.id for r in selected] == ["r2", "r3", "r4"]


def test_scores_at_or_below_floor_are_excluded():
    ranked = [_scored(1, "a.com", 0.5), _scored(2, "b.com", 0.51)]
    assert [r.id for r in DiversitySelector().select(ranked, max_count=5)] == ["r2"]


def test_selection_respects_max_count():
    ranked = [_scored(i, f"site{i}.com", 0.9 - i * 0.01) for i in range(8)]
    assert len(DiversitySelector().select(ranked, max_count=3)) == 3


def test_floor_override_per_call():
    ranked = [_scored(1, "a.com", 0.3)]
    assert DiversitySelector().select(ranked, max_count=3, score_floor=0.2)[0].id == "r1"


def test_nothing_above_floor_raises_selection_empty():
    ranked = [_scored(1, "a.com", 0.2), _scored(2, "b.com", 0.0)]
    with pytest.raises(SelectionEmptyError):
        DiversitySelector().select(ranked, max_count=5)


def test_unique_hosts_counts_hostnames():
    results = [make_result(1, "a.com"), make_result(2, "a.com"), make_result(3, "b.com")]
    assert unique_hosts(results) == 2
