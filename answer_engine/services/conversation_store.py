from __future__ import annotations

from typing import Protocol

from answer_engine.models.messages import Message


class ConversationStore(Protocol):
    def append(self, message: Message) -> None: ...

    def replace_last(self, message: Message) -> None: ...

    def list(self) -> list[Message]: ...

    def clear(self) -> None: ...


class InMemoryConversationStore:
    """Ordered message list for one conversation."""

    def __init__(self, messages: list[Message] | None = None):
        self._messages: list[Message] = list(messages or [])

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def replace_last(self, message: Message) -> None:
        if not self._messages:
            raise IndexError("replace_last called on an empty conversation")
        self._messages[-1] = message

    def list(self) -> list[Message]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)
