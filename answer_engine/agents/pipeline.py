from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from answer_engine.agents.base import AgentContext
from answer_engine.agents.consolidation_agent import ConsolidationAgent
from answer_engine.agents.planning_agent import PlanningAgent
from answer_engine.agents.search_agent import SearchAgent
from answer_engine.exceptions import PipelineStageFailure, TurnCancelled
from answer_engine.models.messages import Source, Step, StepStatus
from answer_engine.models.research_plan import ConsolidatedResponse, ResearchPlan
from answer_engine.services import logger as log_service

StepSink = Callable[[list[Step]], None]

CANONICAL_STEPS: tuple[tuple[str, str, bool, tuple[str, ...]], ...] = (
    ("planning", "Planning the response", False, ()),
    ("searching", "Searching for relevant information", True, ("web_search",)),
    ("consolidating", "Consolidating information and generating response", False, ()),
)


def canonical_steps() -> list[Step]:
    return [
        Step(
            id=index,
            description=description,
            requires_search=requires_search,
            requires_tools=list(tools),
        )
        for index, (_, description, requires_search, tools) in enumerate(CANONICAL_STEPS, 1)
    ]


@dataclass
class PipelineResult:
    plan: ResearchPlan
    response: ConsolidatedResponse
    steps: list[Step] = field(default_factory=list)
    searched_sources: list[Source] = field(default_factory=list)


class AgentPipeline:
    """Plan -> search -> consolidate, strictly in order, with step progress.

    Snapshots of all three steps are sent to ``on_steps``: once with every
    step pending, once when planning starts, then after each stage with that
    stage complete and the next one loading. A stage failure stops the run
    and leaves the step states as they were.
    """

    def __init__(
        self,
        planner: PlanningAgent,
        searcher: SearchAgent,
        consolidator: ConsolidationAgent,
    ):
        self.planner = planner
        self.searcher = searcher
        self.consolidator = consolidator

    async def run(
        self, ctx: AgentContext, on_steps: StepSink | None = None
    ) -> PipelineResult | None:
        """Run all stages. Returns ``None`` if the token was cancelled."""
        steps = canonical_steps()
        turn_id = ctx.turn_id

        def emit() -> None:
            if on_steps is None or ctx.token.cancelled:
                return
            on_steps([step.model_copy(deep=True) for step in steps])

        async def run_stage(index: int, stage_call: Callable[[], Awaitable[Any]]) -> Any:
            stage = CANONICAL_STEPS[index][0]
            ctx.token.raise_if_cancelled()
            if index == 0:
                steps[0].status = StepStatus.LOADING
                emit()
            log_service.log_turn_step(turn_id, stage, "loading")

            try:
                result = await stage_call()
            except TurnCancelled:
                raise
            except Exception as e:
                if ctx.token.cancelled:
                    raise TurnCancelled() from e
                log_service.log_turn_step(turn_id, stage, "failed", {"error": str(e)})
                raise PipelineStageFailure(
                    stage, e, steps=[step.model_copy(deep=True) for step in steps]
                ) from e

            ctx.token.raise_if_cancelled()
            steps[index].status = StepStatus.COMPLETE
            if index + 1 < len(steps):
                steps[index + 1].status = StepStatus.LOADING
            log_service.log_turn_step(turn_id, stage, "complete")
            emit()
            return result

        emit()
        try:
            plan: ResearchPlan = await run_stage(0, lambda: self.planner.execute(ctx))
            sources: list[Source] = await run_stage(
                1, lambda: self.searcher.execute(ctx, plan)
            )
            response: ConsolidatedResponse = await run_stage(
                2, lambda: self.consolidator.execute(ctx, plan, sources)
            )
        except TurnCancelled:
            return None

        return PipelineResult(
            plan=plan,
            response=response,
            steps=[step.model_copy(deep=True) for step in steps],
            searched_sources=sources,
        )
