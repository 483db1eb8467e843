"""Prompt catalog for the planner, ranker and report collaborators.

Prompts live in `prompts/prompts.json`, addressed by dotted keys
(`ranker.prompt`) and rendered with `string.Template` placeholders.
"""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

DEFAULT_PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    def __init__(self, path: Path = DEFAULT_PROMPTS_PATH):
        self.path = path
        self._entries: dict[str, Any] | None = None
        self._mtime_ns: int | None = None

    def _entries_for_read(self) -> dict[str, Any]:
        mtime_ns = self.path.stat().st_mtime_ns
        if self._entries is None or self._mtime_ns != mtime_ns:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise ValueError(f"Prompt catalog at {self.path} must be a JSON object")
            self._entries = payload
            self._mtime_ns = mtime_ns
        return self._entries

    def template(self, key: str) -> str:
        node: Any = self._entries_for_read()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {key}")
            node = node[part]
        if isinstance(node, list):
            node = "\n".join(str(line) for line in node)
        if not isinstance(node, str):
            raise TypeError(f"Prompt key must map to text: {key}")
        return node

    def render(self, key: str, **values: Any) -> str:
        rendered = {
            name: value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, indent=2)
            for name, value in values.items()
        }
        try:
            return Template(self.template(key)).substitute(**rendered)
        except KeyError as exc:
            raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc


_default_catalog = PromptCatalog()


def render_prompt(key: str, **values: Any) -> str:
    return _default_catalog.render(key, **values)
