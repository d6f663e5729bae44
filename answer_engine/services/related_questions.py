from __future__ import annotations

import json
from typing import AsyncIterator

from pydantic import BaseModel, ValidationError

from answer_engine.exceptions import ParseFailure
from answer_engine.llm_client import ToolSpec
from answer_engine.models.events import StreamEvent, ToolArgsDelta
from answer_engine.services import logger as log_service
from answer_engine.services.cancellation import CancellationToken

DEFAULT_RELATED_QUESTIONS: tuple[str, ...] = (
    "What are the benefits?",
    "How does this work?",
    "Tell me more about this topic",
    "Can you explain further?",
    "What are the alternatives?",
)

RELATED_QUESTIONS_TOOL = ToolSpec(
    name="get_related_questions",
    description="Get related follow-up questions based on conversation context",
    parameters={
        "type": "object",
        "properties": {
            "questions": {
                "type": "array",
                "description": "Array of 5 contextually relevant follow-up questions",
                "items": {"type": "string"},
                "minItems": 5,
                "maxItems": 5,
            }
        },
        "required": ["questions"],
    },
)


class RelatedQuestionsPayload(BaseModel):
    questions: list[str]


def _parse_questions(raw: str) -> list[str]:
    try:
        payload = RelatedQuestionsPayload.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise ParseFailure(f"Related questions payload is not valid: {e}") from e

    questions: list[str] = []
    for question in payload.questions:
        cleaned = " ".join(question.split())
        if cleaned and cleaned not in questions:
            questions.append(cleaned)
    if not questions:
        raise ParseFailure("Related questions payload has no questions")
    return questions


def parse_related_questions(raw: str, *, count: int = 5) -> list[str]:
    """Parse the accumulated tool arguments, falling back to the default list."""
    try:
        questions = _parse_questions(raw)
    except ParseFailure as e:
        log_service.log_event(
            event_type="parse_failure",
            message="Using default related questions",
            level="WARNING",
            error=str(e),
            raw=raw[:200],
        )
        return list(DEFAULT_RELATED_QUESTIONS[:count])

    # Pad a short list from the defaults so callers always get `count` items.
    for fallback in DEFAULT_RELATED_QUESTIONS:
        if len(questions) >= count:
            break
        if fallback not in questions:
            questions.append(fallback)
    return questions[:count]


class RelatedQuestionExtractor:
    """Collects a forced tool call's argument stream and parses it once at the end."""

    def __init__(self, *, count: int = 5):
        self.count = count
        self._fragments: list[str] = []

    @property
    def raw(self) -> str:
        return "".join(self._fragments)

    async def extract(
        self,
        events: AsyncIterator[StreamEvent],
        token: CancellationToken | None = None,
    ) -> list[str]:
        async for event in events:
            if isinstance(event, ToolArgsDelta):
                self._fragments.append(event.fragment)
        if token is not None and token.cancelled:
            # Fragments are partial after a stop.
            return list(DEFAULT_RELATED_QUESTIONS[: self.count])
        return parse_related_questions(self.raw, count=self.count)
