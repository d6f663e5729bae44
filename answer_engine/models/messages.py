from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class ChatMode(str, Enum):
    STANDARD = "standard"
    PRO = "pro"


class StepStatus(str, Enum):
    PENDING = "pending"
    LOADING = "loading"
    COMPLETE = "complete"


class Source(BaseModel):
    """A web-search hit cited by an assistant message. ``id`` is the URL."""

    id: str
    title: str
    url: str
    snippet: str = ""


class Step(BaseModel):
    """One of the three canonical Pro-mode pipeline steps."""

    id: int
    description: str
    requires_search: bool = False
    requires_tools: list[str] = Field(default_factory=list)
    status: StepStatus = StepStatus.PENDING


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: str

    def to_chat_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class StandardMessage(BaseModel):
    """Assistant message produced by the single-shot flow."""

    role: Literal["assistant"] = "assistant"
    mode: Literal["standard"] = "standard"
    content: str = ""
    sources: list[Source] = Field(default_factory=list)
    related: list[str] = Field(default_factory=list)

    def to_chat_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class AgentMessage(BaseModel):
    """Assistant message produced by the Pro-mode agent pipeline."""

    role: Literal["assistant"] = "assistant"
    mode: Literal["pro"] = "pro"
    content: str = ""
    sources: list[Source] = Field(default_factory=list)
    related: list[str] = Field(default_factory=list)
    steps: list[Step] = Field(default_factory=list)
    confidence: float | None = None

    def to_chat_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


AssistantMessage = Annotated[
    Union[StandardMessage, AgentMessage], Field(discriminator="mode")
]
Message = Union[UserMessage, StandardMessage, AgentMessage]

# Validating form of Message, used by API schemas and stored threads.
ConversationMessage = Union[UserMessage, AssistantMessage]


def to_chat_messages(history: list[Message]) -> list[dict[str, str]]:
    """Project a conversation onto the role/content pairs sent to the model."""
    return [m.to_chat_message() for m in history if m.content]
