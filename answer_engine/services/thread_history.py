from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol
from uuid import uuid4

from pydantic import BaseModel, Field

from answer_engine.models.messages import ConversationMessage


class ThreadRecord(BaseModel):
    id: str
    title: str
    messages: list[ConversationMessage] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ThreadHistoryCache(Protocol):
    def upsert(self, thread_id: str | None, title: str, messages: list) -> ThreadRecord: ...


class InMemoryThreadHistory:
    """Thread metadata keyed by id, most recently updated first."""

    def __init__(self) -> None:
        self._threads: dict[str, ThreadRecord] = {}

    def upsert(self, thread_id: str | None, title: str, messages: list) -> ThreadRecord:
        now = datetime.now(timezone.utc)
        existing = self._threads.get(thread_id) if thread_id else None
        if existing is None:
            record = ThreadRecord(
                id=thread_id or uuid4().hex,
                title=title,
                messages=list(messages),
                created_at=now,
                updated_at=now,
            )
        else:
            record = existing.model_copy(
                update={"title": title, "messages": list(messages), "updated_at": now}
            )
        self._threads[record.id] = record
        return record

    def get(self, thread_id: str) -> ThreadRecord | None:
        return self._threads.get(thread_id)

    def list(self) -> list[ThreadRecord]:
        return sorted(self._threads.values(), key=lambda t: t.updated_at, reverse=True)

    def delete(self, thread_id: str) -> bool:
        return self._threads.pop(thread_id, None) is not None
