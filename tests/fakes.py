"""Scripted collaborators for the answer engine tests (no network)."""
import asyncio
import json
from types import SimpleNamespace

from answer_engine.exceptions import StreamError
from answer_engine.llm_client import CompletionResponse, Usage
from answer_engine.models.events import TextDelta, ToolArgsDelta

QUESTIONS = [
    "What is the population of Paris?",
    "When did Paris become the capital?",
    "What are famous landmarks in Paris?",
    "How big is Paris?",
    "What language is spoken in Paris?",
]


class FakeLLM:
    """Scripted stand-in for CompletionsAdapter.

    ``responses`` maps a caller name to the text (or exception) that
    ``create`` returns. The answer stream yields ``answer_chunks`` and can
    pause on ``gate`` after ``block_after`` chunks. ``related_error`` makes
    the related-questions stream fail after one scheduling round, and
    ``create_delay`` holds each ``create`` call for that many rounds.
    """

    def __init__(
        self,
        answer_chunks=("Paris", " is the capital of France."),
        questions=None,
        responses=None,
        answer_error=None,
        block_after=None,
        related_error=None,
        create_delay=0,
    ):
        self.answer_chunks = list(answer_chunks)
        self.questions = list(QUESTIONS if questions is None else questions)
        self.responses = dict(responses or {})
        self.answer_error = answer_error
        self.block_after = block_after
        self.related_error = related_error
        self.create_delay = create_delay
        self.answer_yielded = 0
        self.gate = asyncio.Event()
        self.waiting = False
        self.create_calls = []
        self.stream_calls = []

    async def create(self, messages, *, caller, token=None, **kwargs):
        self.create_calls.append(SimpleNamespace(messages=messages, caller=caller, kwargs=kwargs))
        for _ in range(self.create_delay):
            await asyncio.sleep(0)
        if token is not None:
            token.raise_if_cancelled()
        response = self.responses.get(caller, "")
        if isinstance(response, Exception):
            raise response
        return CompletionResponse(text=response, tool_arguments=None, usage=Usage())

    async def stream_events(self, messages, *, token, caller, tool=None, model=None):
        self.stream_calls.append(SimpleNamespace(messages=messages, caller=caller, tool=tool))
        if tool is not None:
            await asyncio.sleep(0)
            if self.related_error is not None:
                raise self.related_error
            if not token.cancelled:
                yield ToolArgsDelta(json.dumps({"questions": self.questions}))
            return

        for index, chunk in enumerate(self.answer_chunks):
            if self.block_after is not None and index == self.block_after:
                self.waiting = True
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if token.cancelled:
                return
            self.answer_yielded += 1
            yield TextDelta(chunk)
        if self.answer_error is not None:
            raise StreamError("connection reset", cause=self.answer_error)
