from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from answer_engine.api.deps import ConversationRegistry, get_registry
from answer_engine.models.schemas import ThreadDetailResponse, ThreadResponse

router = APIRouter(prefix="/api/threads", tags=["threads"])


@router.get("", response_model=list[ThreadResponse])
async def list_threads(registry: ConversationRegistry = Depends(get_registry)):
    """List conversation threads, most recently updated first."""
    return [
        ThreadResponse(
            id=t.id, title=t.title, created_at=t.created_at, updated_at=t.updated_at
        )
        for t in registry.thread_cache.list()
    ]


@router.get("/{thread_id}", response_model=ThreadDetailResponse)
async def get_thread(thread_id: str, registry: ConversationRegistry = Depends(get_registry)):
    thread = registry.thread_cache.get(thread_id)
    if thread is None:
        raise HTTPException(status_code=404, detail="Thread not found")

    return ThreadDetailResponse(
        thread=ThreadResponse(
            id=thread.id,
            title=thread.title,
            created_at=thread.created_at,
            updated_at=thread.updated_at,
        ),
        messages=thread.messages,
    )
