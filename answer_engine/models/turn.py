from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

from answer_engine.models.messages import AgentMessage, ChatMode, Message, StandardMessage, Step
from answer_engine.services.cancellation import CancellationToken


class TurnStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass
class Turn:
    """One user submission and its response lifecycle."""

    query: str
    history: list[Message]
    mode: ChatMode
    token: CancellationToken = field(default_factory=CancellationToken)
    id: str = field(default_factory=lambda: uuid4().hex)
    # Set once the turn has appended its assistant message to the store.
    opened: bool = False
    # Set when the user stopped or superseded the turn.
    stop_requested: bool = False
    # Last Pro-mode step snapshot, reported if the turn fails.
    steps: list[Step] = field(default_factory=list)


@dataclass
class TurnResult:
    status: TurnStatus
    message: StandardMessage | AgentMessage | None = None

    @property
    def stopped(self) -> bool:
        return self.status is TurnStatus.STOPPED
