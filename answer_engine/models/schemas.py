from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from answer_engine.models.messages import ChatMode, ConversationMessage


# --- Requests ---


class ChatRequest(BaseModel):
    query: str = Field(min_length=1)
    mode: ChatMode = ChatMode.STANDARD


# --- Responses ---


class StopResponse(BaseModel):
    status: str


class MessagesResponse(BaseModel):
    conversation_id: str
    messages: list[ConversationMessage]


class ThreadResponse(BaseModel):
    id: str
    title: str
    created_at: datetime
    updated_at: datetime


class ThreadDetailResponse(BaseModel):
    thread: ThreadResponse
    messages: list[ConversationMessage]
