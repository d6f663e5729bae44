from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


@dataclass(frozen=True)
class TextDelta:
    """An incremental text token from a completion stream."""

    text: str


@dataclass(frozen=True)
class ToolArgsDelta:
    """An incremental fragment of a tool call's JSON arguments."""

    fragment: str


StreamEvent = Union[TextDelta, ToolArgsDelta]


class EventType(str, Enum):
    SNAPSHOT = "snapshot"
    COMPLETE = "complete"
    FAILED = "failed"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.data)}\n\n"
