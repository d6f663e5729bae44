from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from answer_engine.models.messages import Source


class PlanStep(BaseModel):
    """A single sub-step of a Pro-mode plan."""
    id: int
    description: str
    requires_search: bool = False
    requires_tools: list[str] = []
    search_query: Optional[str] = None  # Falls back to the user's query


class ResearchPlan(BaseModel):
    """Ordered plan produced by the planning stage."""
    steps: list[PlanStep] = Field(min_length=1)


class ConsolidatedResponse(BaseModel):
    """Output of the consolidation stage."""
    answer: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    sources: list[Source] = []
