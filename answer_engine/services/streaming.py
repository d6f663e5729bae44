from __future__ import annotations

from typing import Any

from answer_engine.models.events import EventType, SSEEvent
from answer_engine.models.messages import AgentMessage, StandardMessage
from answer_engine.models.turn import TurnResult, TurnStatus


def _message_data(message: StandardMessage | AgentMessage) -> dict[str, Any]:
    return message.model_dump(mode="json")


def snapshot(message: StandardMessage | AgentMessage) -> SSEEvent:
    """Emit the current state of the in-flight assistant message."""
    return SSEEvent(event=EventType.SNAPSHOT, data=_message_data(message))


def complete(message: StandardMessage | AgentMessage) -> SSEEvent:
    return SSEEvent(event=EventType.COMPLETE, data=_message_data(message))


def failed(message: StandardMessage | AgentMessage) -> SSEEvent:
    return SSEEvent(event=EventType.FAILED, data=_message_data(message))


def stopped(turn_id: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {}
    if turn_id:
        data["turn_id"] = turn_id
    return SSEEvent(event=EventType.STOPPED, data=data)


def for_result(result: TurnResult) -> SSEEvent:
    """Map a turn's terminal state to its closing event."""
    if result.status is TurnStatus.COMPLETED and result.message is not None:
        return complete(result.message)
    if result.status is TurnStatus.FAILED and result.message is not None:
        return failed(result.message)
    return stopped()


def error(message: str) -> SSEEvent:
    return SSEEvent(event=EventType.ERROR, data={"message": message})
