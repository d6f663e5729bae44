from __future__ import annotations

from answer_engine.agents.base import AgentContext
from answer_engine.models.messages import Source
from answer_engine.models.research_plan import ResearchPlan
from answer_engine.services.search_gate import SearchGate


class SearchAgent:
    """Runs one retrieval per search-flagged plan step, in plan order.

    Steps run sequentially so citation order is reproducible. Duplicate URLs
    keep their first position.
    """

    name = "search"

    def __init__(self, search_gate: SearchGate):
        self.search_gate = search_gate

    async def execute(self, ctx: AgentContext, plan: ResearchPlan) -> list[Source]:
        sources: list[Source] = []
        seen: set[str] = set()

        for step in plan.steps:
            if not step.requires_search:
                continue
            ctx.token.raise_if_cancelled()

            step_sources = await self.search_gate.retrieve(
                step.search_query or ctx.query, ctx.token, gated=False
            )
            for source in step_sources:
                if source.url in seen:
                    continue
                seen.add(source.url)
                sources.append(source)

        return sources
