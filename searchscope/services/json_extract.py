"""Extraction of JSON objects from free-form model output.

Generation collaborators are asked for JSON but routinely wrap it in prose or
markdown fences. The text is treated as untrusted: the first substring that
decodes as a JSON object wins, anything else is a ParseError.
"""
from __future__ import annotations

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from searchscope.exceptions import ParseError

M = TypeVar("M", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _first_object(text: str) -> dict[str, Any] | None:
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start >= 0:
        try:
            parsed, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(parsed, dict):
            return parsed
        start = text.find("{", start + 1)
    return None


def extract_json_object(raw_text: str) -> dict[str, Any]:
    if not isinstance(raw_text, str) or not raw_text.strip():
        raise ParseError("Model returned an empty response")

    text = raw_text.strip()
    for block in _FENCE_RE.findall(text):
        parsed = _first_object(block)
        if parsed is not None:
            return parsed

    parsed = _first_object(text)
    if parsed is None:
        raise ParseError("No valid JSON object found in model response")
    return parsed


def parse_model(raw_text: str, model: type[M]) -> M:
    payload = extract_json_object(raw_text)
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ParseError(f"Model response did not match {model.__name__}: {exc.error_count()} errors") from exc
