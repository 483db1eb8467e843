from __future__ import annotations

import pytest

from searchscope.exceptions import ParseError
from searchscope.models.schemas import RankingResponse
from searchscope.services.json_extract import extract_json_object, parse_model


def test_extracts_fenced_json():
    raw = 'Here you go:\n```json\n{"rankings": [], "analysis": "none"}\n```\nThanks!'
    assert extract_json_object(raw) == {"rankings": [], "analysis": "none"}


def test_extracts_object_wrapped_in_prose_with_nested_braces():
    raw = 'Sure! {"a": {"b": [1, 2, {"c": "}"}]}} That is all.'
    assert extract_json_object(raw) == {"a": {"b": [1, 2, {"c": "}"}]}}


def test_skips_invalid_candidates_before_a_valid_object():
    raw = 'Use {braces} loosely, then {"ok": true}'
    assert extract_json_object(raw) == {"ok": True}


@pytest.mark.parametrize("raw", ["", "   ", "no json here", "[1, 2, 3]"])
def test_raises_parse_error_without_an_object(raw):
    with pytest.raises(ParseError):
        extract_json_object(raw)


def test_parse_model_reports_shape_mismatch_as_parse_error():
    with pytest.raises(ParseError):
        parse_model('{"rankings": "not a list"}', RankingResponse)


def test_parse_model_validates_payload():
    parsed = parse_model('{"rankings": [{"url": "https://a.com", "score": 0.4}]}', RankingResponse)
    assert parsed.rankings[0].score == 0.4
    assert parsed.analysis == ""
