from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from loguru import logger

from answer_engine.agents.base import AgentContext
from answer_engine.agents.consolidation_agent import ConsolidationAgent
from answer_engine.agents.pipeline import AgentPipeline
from answer_engine.agents.planning_agent import PlanningAgent
from answer_engine.agents.search_agent import SearchAgent
from answer_engine.config import settings
from answer_engine.exceptions import PipelineStageFailure, StreamError, TurnCancelled
from answer_engine.llm_client import CompletionsAdapter, get_client
from answer_engine.models.messages import (
    AgentMessage,
    ChatMode,
    Message,
    Source,
    StandardMessage,
    Step,
    UserMessage,
    to_chat_messages,
)
from answer_engine.models.turn import Turn, TurnResult, TurnStatus
from answer_engine.prompts import (
    MAIN_ASSISTANT_SYSTEM_PROMPT,
    RELATED_QUESTIONS_REQUEST_PROMPT,
    RELATED_QUESTIONS_SYSTEM_PROMPT,
    get_search_results_prompt,
)
from answer_engine.services import logger as log_service
from answer_engine.services.aggregator import ResponseAggregator
from answer_engine.services.cancellation import CancellationToken
from answer_engine.services.conversation_store import (
    ConversationStore,
    InMemoryConversationStore,
)
from answer_engine.services.related_questions import (
    RELATED_QUESTIONS_TOOL,
    RelatedQuestionExtractor,
)
from answer_engine.services.search_gate import SearchGate
from answer_engine.services.thread_history import ThreadHistoryCache
from answer_engine.tools.search_provider import SearchProvider

APOLOGY_MESSAGE = "I encountered an error while processing your request. Please try again."

ProgressCallback = Callable[[StandardMessage | AgentMessage], None]


class ChatOrchestrator:
    """Runs one conversation's turns, one at a time.

    Flow per turn (standard mode):
      1. Decide whether to search and retrieve sources
      2. Fan out: stream the answer and the related questions as two tasks
      3. Emit throttled snapshots of the answer while it streams
      4. Emit the final message with sources and related questions

    Pro mode runs the plan -> search -> consolidate pipeline instead of the
    answer stream and reports step progress. A new ``submit`` cancels the
    active turn; ``stop`` cancels it without starting another.
    """

    def __init__(
        self,
        llm: CompletionsAdapter,
        search_gate: SearchGate,
        *,
        store: ConversationStore | None = None,
        thread_cache: ThreadHistoryCache | None = None,
        pipeline: AgentPipeline | None = None,
        update_interval: float = 0.05,
        related_count: int = 5,
        clock: Callable[[], float] = time.monotonic,
        thread_id: str | None = None,
    ):
        self.llm = llm
        self.search_gate = search_gate
        self.store = store if store is not None else InMemoryConversationStore()
        self.thread_cache = thread_cache
        self.pipeline = pipeline or AgentPipeline(
            PlanningAgent(llm),
            SearchAgent(search_gate),
            ConsolidationAgent(llm),
        )
        self.update_interval = update_interval
        self.related_count = related_count
        self._clock = clock
        self._active: Turn | None = None
        self._thread_id = thread_id

    @classmethod
    def from_settings(
        cls,
        *,
        llm: CompletionsAdapter | None = None,
        search_gate: SearchGate | None = None,
        store: ConversationStore | None = None,
        thread_cache: ThreadHistoryCache | None = None,
        thread_id: str | None = None,
    ) -> "ChatOrchestrator":
        llm = llm or get_client()
        search_gate = search_gate or SearchGate(
            llm,
            SearchProvider.from_settings(),
            classifier_model=settings.classifier_model.strip() or None,
        )
        pipeline = AgentPipeline(
            PlanningAgent(llm, model=settings.planner_model.strip() or None),
            SearchAgent(search_gate),
            ConsolidationAgent(llm),
        )
        return cls(
            llm,
            search_gate,
            store=store,
            thread_cache=thread_cache,
            pipeline=pipeline,
            update_interval=settings.update_interval,
            related_count=settings.related_questions_count,
            thread_id=thread_id,
        )

    @property
    def active_turn(self) -> Turn | None:
        return self._active

    @property
    def thread_id(self) -> str | None:
        return self._thread_id

    def stop(self) -> bool:
        """Cancel the active turn. Returns False when nothing was running."""
        turn = self._active
        if turn is None or turn.token.cancelled:
            return False
        turn.stop_requested = True
        turn.token.cancel()
        log_service.log_turn_step(turn.id, "turn", "stop_requested")
        return True

    async def submit(
        self,
        query: str,
        history: list[Message] | None = None,
        mode: ChatMode | str = ChatMode.STANDARD,
        on_progress: ProgressCallback | None = None,
    ) -> TurnResult:
        """Run one turn and return its terminal state.

        ``history`` defaults to the store's messages before this turn.
        """
        previous = self._active
        if previous is not None and not previous.token.cancelled:
            previous.stop_requested = True
            previous.token.cancel()
            log_service.log_turn_step(previous.id, "turn", "superseded")

        turn = Turn(
            query=query,
            history=list(history) if history is not None else self.store.list(),
            mode=ChatMode(mode),
        )
        self._active = turn
        self.store.append(UserMessage(content=query))
        log_service.log_turn_step(turn.id, "turn", "started", {"mode": turn.mode.value})

        publish = self._publisher(turn, on_progress)
        try:
            if turn.mode is ChatMode.PRO:
                message = await self._run_pro(turn, publish)
            else:
                message = await self._run_standard(turn, publish)
            result = TurnResult(status=TurnStatus.COMPLETED, message=message)
        except TurnCancelled:
            result = TurnResult(status=TurnStatus.STOPPED)
        except (StreamError, PipelineStageFailure) as e:
            result = self._fail(turn, e)
        finally:
            if self._active is turn:
                self._active = None

        log_service.log_turn_step(turn.id, "turn", result.status.value)
        if result.status is not TurnStatus.STOPPED:
            self._record_thread()
        return result

    # Flows ----------------------------------------------------------

    async def _run_standard(
        self, turn: Turn, publish: Callable[[Any], None]
    ) -> StandardMessage:
        sources = await self.search_gate.retrieve(turn.query, turn.token)
        turn.token.raise_if_cancelled()

        aggregator = ResponseAggregator(
            turn.token, publish, interval=self.update_interval, clock=self._clock
        )
        extractor = RelatedQuestionExtractor(count=self.related_count)

        text, related = await self._join(
            aggregator.consume(
                self.llm.stream_events(
                    self._answer_messages(turn, sources),
                    token=turn.token,
                    caller="orchestrator.answer",
                )
            ),
            self._related_questions(turn, extractor),
            token=turn.token,
        )
        turn.token.raise_if_cancelled()
        if not text.strip():
            raise StreamError("Answer stream finished without any text")

        message = aggregator.finish(sources, related)
        if message is None:
            raise TurnCancelled()
        return message

    async def _run_pro(
        self, turn: Turn, publish: Callable[[Any], None]
    ) -> AgentMessage:
        ctx = AgentContext(
            query=turn.query,
            token=turn.token,
            history=to_chat_messages(turn.history),
            turn_id=turn.id,
        )
        extractor = RelatedQuestionExtractor(count=self.related_count)

        def on_steps(steps: list[Step]) -> None:
            turn.steps = steps
            publish(AgentMessage(steps=steps))

        result, related = await self._join(
            self.pipeline.run(ctx, on_steps),
            self._related_questions(turn, extractor),
            token=turn.token,
        )
        if result is None or turn.token.cancelled:
            raise TurnCancelled()

        message = AgentMessage(
            content=result.response.answer,
            sources=result.response.sources,
            related=related,
            steps=result.steps,
            confidence=result.response.confidence,
        )
        publish(message)
        return message

    async def _related_questions(
        self, turn: Turn, extractor: RelatedQuestionExtractor
    ) -> list[str]:
        return await extractor.extract(
            self.llm.stream_events(
                self._related_messages(turn),
                token=turn.token,
                caller="orchestrator.related_questions",
                tool=RELATED_QUESTIONS_TOOL,
            ),
            turn.token,
        )

    @staticmethod
    async def _join(
        primary: Awaitable[Any],
        secondary: Awaitable[Any],
        *,
        token: CancellationToken,
    ) -> tuple[Any, Any]:
        """Run both awaitables as tasks and wait for both.

        The first failure cancels the shared token so the sibling stops at
        its next check, then is re-raised once the sibling has finished.
        """
        tasks = (asyncio.ensure_future(primary), asyncio.ensure_future(secondary))
        try:
            _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            token.cancel()
            for task in tasks:
                task.cancel()
            raise

        failure = next(
            (t.exception() for t in tasks if t.done() and not t.cancelled() and t.exception()),
            None,
        )
        if failure is None:
            return tasks[0].result(), tasks[1].result()

        token.cancel()
        if pending:
            await asyncio.wait(pending)
        for task in tasks:
            # Mark sibling errors as retrieved; only the first failure is reported.
            if task.done() and not task.cancelled():
                task.exception()
        raise failure

    # Messages -------------------------------------------------------

    @staticmethod
    def _answer_messages(turn: Turn, sources: list[Source]) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": MAIN_ASSISTANT_SYSTEM_PROMPT}]
        messages.extend(to_chat_messages(turn.history))
        if sources:
            messages.append(
                {
                    "role": "user",
                    "content": get_search_results_prompt(SearchGate.format_context(sources)),
                }
            )
        messages.append({"role": "user", "content": turn.query})
        return messages

    @staticmethod
    def _related_messages(turn: Turn) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": RELATED_QUESTIONS_SYSTEM_PROMPT}]
        messages.extend(to_chat_messages(turn.history))
        messages.append({"role": "user", "content": turn.query})
        messages.append({"role": "user", "content": RELATED_QUESTIONS_REQUEST_PROMPT})
        return messages

    # Store / thread plumbing ----------------------------------------

    def _publisher(
        self, turn: Turn, on_progress: ProgressCallback | None
    ) -> Callable[[StandardMessage | AgentMessage], None]:
        def publish(message: StandardMessage | AgentMessage) -> None:
            if turn.token.cancelled:
                return
            self._commit(turn, message)
            if on_progress is None:
                return
            try:
                on_progress(message)
            except Exception:
                logger.exception(f"Progress callback failed for turn {turn.id}")

        return publish

    def _commit(self, turn: Turn, message: StandardMessage | AgentMessage) -> None:
        if turn.opened:
            self.store.replace_last(message)
        else:
            self.store.append(message)
            turn.opened = True

    def _fail(self, turn: Turn, error: StreamError | PipelineStageFailure) -> TurnResult:
        if turn.stop_requested:
            return TurnResult(status=TurnStatus.STOPPED)

        logger.opt(exception=error).error(
            f"Turn {turn.id} failed in {turn.mode.value} mode: {error}"
        )
        if turn.mode is ChatMode.PRO:
            steps = error.steps if isinstance(error, PipelineStageFailure) else turn.steps
            message: StandardMessage | AgentMessage = AgentMessage(
                content=APOLOGY_MESSAGE, steps=steps
            )
        else:
            message = StandardMessage(content=APOLOGY_MESSAGE)

        if self._active is turn:
            self._commit(turn, message)
        return TurnResult(status=TurnStatus.FAILED, message=message)

    def _record_thread(self) -> None:
        if self.thread_cache is None:
            return
        messages = self.store.list()
        first_query = next((m.content for m in messages if isinstance(m, UserMessage)), "")
        try:
            record = self.thread_cache.upsert(self._thread_id, first_query[:100], messages)
            self._thread_id = record.id
        except Exception as e:
            log_service.log_event(
                event_type="thread_cache_error",
                message="Failed to update thread history",
                level="WARNING",
                error=str(e),
            )
