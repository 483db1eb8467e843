from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    STAGE_CHANGED = "stage_changed"
    INSIGHT = "insight"
    SEARCH_RESULT = "search_result"
    RANKING_COMPLETE = "ranking_complete"
    SELECTION_MADE = "selection_made"
    FETCH_STATUS = "fetch_status"
    REPORT_READY = "report_ready"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.data)}\n\n"
