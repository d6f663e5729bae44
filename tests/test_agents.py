"""Tests for the Pro-mode agents and the plan -> search -> consolidate pipeline."""
import json
from unittest.mock import AsyncMock

import pytest

from answer_engine.agents.base import AgentContext, BaseAgent
from answer_engine.agents.consolidation_agent import ConsolidationAgent
from answer_engine.agents.pipeline import AgentPipeline
from answer_engine.agents.planning_agent import PlanningAgent
from answer_engine.agents.search_agent import SearchAgent
from answer_engine.exceptions import ParseFailure, PipelineStageFailure, StreamError
from answer_engine.models.messages import Source, StepStatus
from answer_engine.models.research_plan import PlanStep, ResearchPlan
from answer_engine.services.cancellation import CancellationToken
from answer_engine.services.search_gate import SearchGate
from answer_engine.tools.search_provider import SearchProvider

from fakes import FakeLLM

PLAN_JSON = json.dumps(
    {
        "steps": [
            {"id": 7, "description": "Find the capital", "requires_search": True, "search_query": "capital of France"},
            {"id": 9, "description": "Summarise", "requires_search": False},
        ]
    }
)
ANSWER_JSON = json.dumps(
    {"answer": "Paris is the capital of France.", "confidence": 0.9, "sources_used": ["https://a.com"]}
)

SOURCE_A = Source(id="https://a.com", title="A", url="https://a.com", snippet="alpha")
SOURCE_B = Source(id="https://b.com", title="B", url="https://b.com", snippet="beta")


def _ctx(token=None):
    return AgentContext(query="What is the capital of France?", token=token or CancellationToken())


def _statuses(steps):
    return tuple(step.status.value for step in steps)


class TestExtractJsonObject:
    def test_plain_object(self):
        assert BaseAgent._extract_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        assert BaseAgent._extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_prose(self):
        assert BaseAgent._extract_json_object('Here you go: {"a": 1} hope it helps') == {"a": 1}

    def test_missing_object_raises(self):
        with pytest.raises(ParseFailure):
            BaseAgent._extract_json_object("no json here")

    def test_invalid_json_raises(self):
        with pytest.raises(ParseFailure):
            BaseAgent._extract_json_object("{not: valid}")


class TestPlanningAgent:
    @pytest.mark.asyncio
    async def test_plan_is_parsed_and_renumbered(self):
        llm = FakeLLM(responses={"agent.planning": PLAN_JSON})

        plan = await PlanningAgent(llm).execute(_ctx())

        assert [s.id for s in plan.steps] == [1, 2]
        assert plan.steps[0].requires_search is True
        assert plan.steps[0].search_query == "capital of France"
        assert llm.create_calls[0].kwargs["json_mode"] is True

    @pytest.mark.asyncio
    async def test_model_override_is_used(self):
        llm = FakeLLM(responses={"agent.planning": PLAN_JSON})

        await PlanningAgent(llm, model="gpt-4.1").execute(_ctx())

        assert llm.create_calls[0].kwargs["model"] == "gpt-4.1"

    @pytest.mark.asyncio
    async def test_empty_plan_is_a_parse_failure(self):
        llm = FakeLLM(responses={"agent.planning": '{"steps": []}'})

        with pytest.raises(ParseFailure):
            await PlanningAgent(llm).execute(_ctx())


class TestSearchAgent:
    @pytest.mark.asyncio
    async def test_runs_search_steps_in_order_and_dedupes(self):
        gate = SearchGate(FakeLLM(), SearchProvider(api_key="tvly-test"))
        gate.retrieve = AsyncMock(side_effect=[[SOURCE_A, SOURCE_B], [SOURCE_B, SOURCE_A]])
        plan = ResearchPlan(
            steps=[
                PlanStep(id=1, description="one", requires_search=True, search_query="q1"),
                PlanStep(id=2, description="two"),
                PlanStep(id=3, description="three", requires_search=True),
            ]
        )
        ctx = _ctx()

        sources = await SearchAgent(gate).execute(ctx, plan)

        assert sources == [SOURCE_A, SOURCE_B]
        queries = [call.args[0] for call in gate.retrieve.await_args_list]
        assert queries == ["q1", ctx.query]
        assert all(call.kwargs["gated"] is False for call in gate.retrieve.await_args_list)


class TestConsolidationAgent:
    @pytest.mark.asyncio
    async def test_answer_confidence_and_cited_sources(self):
        llm = FakeLLM(responses={"agent.consolidation": ANSWER_JSON})
        plan = ResearchPlan(steps=[PlanStep(id=1, description="Find it")])

        response = await ConsolidationAgent(llm).execute(_ctx(), plan, [SOURCE_A, SOURCE_B])

        assert response.answer == "Paris is the capital of France."
        assert response.confidence == 0.9
        assert response.sources == [SOURCE_A]
        prompt = llm.create_calls[0].messages[-1]["content"]
        assert "1. Find it" in prompt
        assert "URL: https://b.com" in prompt

    @pytest.mark.asyncio
    async def test_confidence_is_clamped(self):
        llm = FakeLLM(responses={"agent.consolidation": '{"answer": "x", "confidence": 7}'})
        plan = ResearchPlan(steps=[PlanStep(id=1, description="d")])

        response = await ConsolidationAgent(llm).execute(_ctx(), plan, [])

        assert response.confidence == 1.0

    @pytest.mark.asyncio
    async def test_missing_answer_is_a_parse_failure(self):
        llm = FakeLLM(responses={"agent.consolidation": '{"confidence": 0.5}'})
        plan = ResearchPlan(steps=[PlanStep(id=1, description="d")])

        with pytest.raises(ParseFailure):
            await ConsolidationAgent(llm).execute(_ctx(), plan, [])


def _pipeline(llm):
    gate = SearchGate(llm, SearchProvider(api_key=""))
    return AgentPipeline(PlanningAgent(llm), SearchAgent(gate), ConsolidationAgent(llm))


class TestAgentPipeline:
    @pytest.mark.asyncio
    async def test_step_snapshots_follow_stage_order(self):
        llm = FakeLLM(responses={"agent.planning": PLAN_JSON, "agent.consolidation": ANSWER_JSON})
        snapshots = []

        result = await _pipeline(llm).run(_ctx(), snapshots.append)

        assert [_statuses(s) for s in snapshots] == [
            ("pending", "pending", "pending"),
            ("loading", "pending", "pending"),
            ("complete", "loading", "pending"),
            ("complete", "complete", "loading"),
            ("complete", "complete", "complete"),
        ]
        assert result.response.answer == "Paris is the capital of France."
        assert [s.id for s in result.steps] == [1, 2, 3]
        assert [c.caller for c in llm.create_calls] == ["agent.planning", "agent.consolidation"]

    @pytest.mark.asyncio
    async def test_snapshots_are_independent_copies(self):
        llm = FakeLLM(responses={"agent.planning": PLAN_JSON, "agent.consolidation": ANSWER_JSON})
        snapshots = []

        await _pipeline(llm).run(_ctx(), snapshots.append)

        assert snapshots[0][0].status is StepStatus.PENDING

    @pytest.mark.asyncio
    async def test_planning_failure_leaves_first_step_loading(self):
        llm = FakeLLM(responses={"agent.planning": StreamError("model unavailable")})
        snapshots = []

        with pytest.raises(PipelineStageFailure) as exc_info:
            await _pipeline(llm).run(_ctx(), snapshots.append)

        failure = exc_info.value
        assert failure.stage == "planning"
        assert isinstance(failure.cause, StreamError)
        assert _statuses(failure.steps) == ("loading", "pending", "pending")
        assert _statuses(snapshots[-1]) == ("loading", "pending", "pending")
        assert [c.caller for c in llm.create_calls] == ["agent.planning"]

    @pytest.mark.asyncio
    async def test_consolidation_failure_keeps_earlier_stages_complete(self):
        llm = FakeLLM(responses={"agent.planning": PLAN_JSON, "agent.consolidation": "garbage"})

        with pytest.raises(PipelineStageFailure) as exc_info:
            await _pipeline(llm).run(_ctx())

        assert exc_info.value.stage == "consolidating"
        assert _statuses(exc_info.value.steps) == ("complete", "complete", "loading")

    @pytest.mark.asyncio
    async def test_cancelled_token_returns_none_without_snapshots(self):
        llm = FakeLLM(responses={"agent.planning": PLAN_JSON})
        token = CancellationToken()
        token.cancel()
        snapshots = []

        assert await _pipeline(llm).run(_ctx(token), snapshots.append) is None
        assert snapshots == []
        assert llm.create_calls == []
