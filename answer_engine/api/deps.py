from __future__ import annotations

from typing import Callable

from answer_engine.agents.orchestrator import ChatOrchestrator
from answer_engine.config import settings
from answer_engine.llm_client import CompletionsAdapter, get_client
from answer_engine.services.conversation_store import InMemoryConversationStore
from answer_engine.services.search_gate import SearchGate
from answer_engine.services.thread_history import InMemoryThreadHistory
from answer_engine.tools.search_provider import SearchProvider

OrchestratorFactory = Callable[[str], ChatOrchestrator]


class ConversationRegistry:
    """One orchestrator (and store) per conversation id, for this process.

    Every orchestrator shares the same completion client, search gate and
    thread history, so only the turn state is per conversation.
    """

    def __init__(
        self,
        factory: OrchestratorFactory | None = None,
        *,
        llm: CompletionsAdapter | None = None,
        thread_cache: InMemoryThreadHistory | None = None,
    ):
        self.thread_cache = thread_cache or InMemoryThreadHistory()
        self._llm = llm
        self._search_gate: SearchGate | None = None
        self._factory = factory or self._from_settings
        self._conversations: dict[str, ChatOrchestrator] = {}

    def _from_settings(self, conversation_id: str) -> ChatOrchestrator:
        if self._llm is None:
            self._llm = get_client()
        if self._search_gate is None:
            self._search_gate = SearchGate(
                self._llm,
                SearchProvider.from_settings(),
                classifier_model=settings.classifier_model.strip() or None,
            )
        return ChatOrchestrator.from_settings(
            llm=self._llm,
            search_gate=self._search_gate,
            store=InMemoryConversationStore(),
            thread_cache=self.thread_cache,
            thread_id=conversation_id,
        )

    def get(self, conversation_id: str) -> ChatOrchestrator | None:
        return self._conversations.get(conversation_id)

    def get_or_create(self, conversation_id: str) -> ChatOrchestrator:
        orchestrator = self._conversations.get(conversation_id)
        if orchestrator is None:
            orchestrator = self._factory(conversation_id)
            self._conversations[conversation_id] = orchestrator
        return orchestrator

    def drop(self, conversation_id: str) -> bool:
        """Stop any active turn and forget the conversation."""
        orchestrator = self._conversations.pop(conversation_id, None)
        if orchestrator is None:
            return False
        orchestrator.stop()
        orchestrator.store.clear()
        return True


_registry: ConversationRegistry | None = None


def get_registry() -> ConversationRegistry:
    global _registry
    if _registry is None:
        _registry = ConversationRegistry()
    return _registry
