"""Error taxonomy for a single conversation turn.

Only ``StreamError`` and ``PipelineStageFailure`` ever reach the orchestrator.
The remaining conditions are recovered inside the layer that raises them.
"""
from __future__ import annotations


class AnswerEngineError(Exception):
    """Base class for all answer engine errors."""


class TurnCancelled(AnswerEngineError):
    """The turn's cancellation token was settled. Not an error for the user."""


class StreamError(AnswerEngineError):
    """A completion call failed for a reason other than cancellation."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class PipelineStageFailure(AnswerEngineError):
    """A Pro-mode pipeline stage raised; later stages were not started."""

    def __init__(
        self,
        stage: str,
        cause: BaseException | None = None,
        steps: list | None = None,
    ):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Pipeline stage '{stage}' failed{detail}")
        self.stage = stage
        self.cause = cause
        # Step states at the moment of failure
        self.steps = steps or []


class SearchUnavailable(AnswerEngineError):
    """Search is disabled or the search call failed."""


class ClassificationFailure(AnswerEngineError):
    """The search-necessity check could not be answered."""


class ParseFailure(AnswerEngineError):
    """A structured payload from the model could not be parsed."""
