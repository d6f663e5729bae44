from __future__ import annotations

import asyncio
import json as _json

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from answer_engine.api.deps import ConversationRegistry, get_registry
from answer_engine.models.events import SSEEvent
from answer_engine.models.messages import AgentMessage, StandardMessage
from answer_engine.models.schemas import ChatRequest, MessagesResponse, StopResponse
from answer_engine.services import logger as log_service
from answer_engine.services import streaming

router = APIRouter(prefix="/api/chat", tags=["chat"])


def _sse(event: SSEEvent) -> dict[str, str]:
    return {"event": event.event.value, "data": _json.dumps(event.data)}


@router.post("/{conversation_id}/stream")
async def stream_chat(
    conversation_id: str,
    request: ChatRequest,
    registry: ConversationRegistry = Depends(get_registry),
):
    """SSE endpoint that runs one turn and streams its message snapshots."""
    orchestrator = registry.get_or_create(conversation_id)

    async def event_generator():
        log_service.log_event(
            event_type="chat_started",
            message="Chat turn started",
            conversation_id=conversation_id,
            mode=request.mode.value,
            query=request.query[:100],
        )
        queue: asyncio.Queue[SSEEvent | None] = asyncio.Queue()

        def on_progress(message: StandardMessage | AgentMessage) -> None:
            queue.put_nowait(streaming.snapshot(message))

        async def run_turn() -> None:
            try:
                result = await orchestrator.submit(
                    request.query, mode=request.mode, on_progress=on_progress
                )
                queue.put_nowait(streaming.for_result(result))
            except Exception as e:
                log_service.log_event(
                    event_type="stream_error",
                    message="Unhandled error in chat stream",
                    level="ERROR",
                    error=str(e),
                    conversation_id=conversation_id,
                )
                queue.put_nowait(streaming.error("Chat stream failed unexpectedly."))
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(run_turn())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield _sse(event)
        finally:
            # Client went away mid-turn.
            if not task.done():
                task.cancel()

    return EventSourceResponse(event_generator())


@router.post("/{conversation_id}/stop", response_model=StopResponse)
async def stop_chat(
    conversation_id: str,
    registry: ConversationRegistry = Depends(get_registry),
):
    """Cancel the conversation's active turn, if any."""
    orchestrator = registry.get(conversation_id)
    if orchestrator is not None and orchestrator.stop():
        return StopResponse(status="stopped")
    return StopResponse(status="idle")


@router.get("/{conversation_id}/messages", response_model=MessagesResponse)
async def list_messages(
    conversation_id: str,
    registry: ConversationRegistry = Depends(get_registry),
):
    orchestrator = registry.get(conversation_id)
    messages = orchestrator.store.list() if orchestrator is not None else []
    return MessagesResponse(conversation_id=conversation_id, messages=messages)


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    registry: ConversationRegistry = Depends(get_registry),
):
    """Stop any active turn and clear the conversation."""
    registry.drop(conversation_id)
    return {"status": "deleted"}
