from __future__ import annotations

from pydantic import ValidationError

from answer_engine.agents.base import AgentContext, BaseAgent
from answer_engine.exceptions import ParseFailure
from answer_engine.models.research_plan import PlanStep, ResearchPlan
from answer_engine.prompts import get_planning_prompt, get_planning_system_prompt


class PlanningAgent(BaseAgent):
    """Breaks the query into ordered sub-steps flagged for search and tools."""

    name = "planning"

    async def execute(self, ctx: AgentContext) -> ResearchPlan:
        payload, _ = await self._complete_json(
            ctx,
            get_planning_system_prompt(),
            get_planning_prompt(ctx.query),
            max_tokens=1024,
        )
        try:
            plan = ResearchPlan.model_validate(payload)
        except ValidationError as e:
            raise ParseFailure(f"Plan does not match the expected shape: {e}") from e

        # Renumber so ids follow plan order regardless of what the model sent.
        return ResearchPlan(
            steps=[
                PlanStep(
                    id=index,
                    description=step.description.strip(),
                    requires_search=step.requires_search,
                    requires_tools=[t for t in step.requires_tools if t],
                    search_query=(step.search_query or "").strip() or None,
                )
                for index, step in enumerate(plan.steps, 1)
            ]
        )
