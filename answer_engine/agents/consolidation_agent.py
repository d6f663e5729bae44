from __future__ import annotations

from typing import Any

from answer_engine.agents.base import AgentContext, BaseAgent
from answer_engine.exceptions import ParseFailure
from answer_engine.models.messages import Source
from answer_engine.models.research_plan import ConsolidatedResponse, ResearchPlan
from answer_engine.prompts import get_consolidation_prompt, get_consolidation_system_prompt


class ConsolidationAgent(BaseAgent):
    """Writes the final answer from the query, plan and gathered sources."""

    name = "consolidation"

    @staticmethod
    def _plan_text(plan: ResearchPlan) -> str:
        return "\n".join(f"{step.id}. {step.description}" for step in plan.steps)

    @staticmethod
    def _results_text(sources: list[Source]) -> str:
        return "\n\n".join(
            f"[{index}] {s.title}\nURL: {s.url}\n{s.snippet}"
            for index, s in enumerate(sources, 1)
        )

    @staticmethod
    def _confidence(raw: Any) -> float:
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return 0.0
        return min(max(value, 0.0), 1.0)

    @staticmethod
    def _select_sources(used: Any, sources: list[Source]) -> list[Source]:
        if not isinstance(used, list):
            return list(sources)
        wanted = {u.strip() for u in used if isinstance(u, str) and u.strip()}
        return [s for s in sources if s.url in wanted]

    async def execute(
        self, ctx: AgentContext, plan: ResearchPlan, sources: list[Source]
    ) -> ConsolidatedResponse:
        payload, _ = await self._complete_json(
            ctx,
            get_consolidation_system_prompt(),
            get_consolidation_prompt(
                ctx.query, self._plan_text(plan), self._results_text(sources)
            ),
            max_tokens=4096,
        )

        answer = payload.get("answer") if isinstance(payload.get("answer"), str) else ""
        if not answer.strip():
            raise ParseFailure("Consolidation produced no answer")

        return ConsolidatedResponse(
            answer=answer.strip(),
            confidence=self._confidence(payload.get("confidence")),
            sources=self._select_sources(payload.get("sources_used"), sources),
        )
