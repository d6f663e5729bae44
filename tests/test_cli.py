"""Tests for the command-line runner."""
from unittest.mock import MagicMock, patch

import pytest

import main as cli
from answer_engine.agents.orchestrator import APOLOGY_MESSAGE, ChatOrchestrator
from answer_engine.services.search_gate import SearchGate
from answer_engine.tools.search_provider import SearchProvider

from fakes import QUESTIONS, FakeLLM


def _run_with(llm):
    gate = SearchGate(llm, SearchProvider(api_key=""))
    orchestrator = ChatOrchestrator(llm, gate, clock=lambda: 0.0)
    return (
        patch.object(cli, "get_client", MagicMock(return_value=llm)),
        patch.object(cli.ChatOrchestrator, "from_settings", return_value=orchestrator),
    )


class TestRunChat:
    @pytest.mark.asyncio
    async def test_failure_after_partial_answer_prints_whole_apology(self, capsys):
        llm = FakeLLM(answer_chunks=["Paris is"], answer_error=ConnectionError("reset"))
        client_patch, orchestrator_patch = _run_with(llm)

        with client_patch, orchestrator_patch:
            await cli.run_chat("Capital?")

        out = capsys.readouterr().out
        assert "Paris is" in out
        assert f"\n{APOLOGY_MESSAGE}\n" in out
        assert "[*] Related:" not in out

    @pytest.mark.asyncio
    async def test_completed_answer_prints_once_with_related(self, capsys):
        llm = FakeLLM(answer_chunks=["Paris", " is the capital."])
        client_patch, orchestrator_patch = _run_with(llm)

        with client_patch, orchestrator_patch:
            await cli.run_chat("Capital?")

        out = capsys.readouterr().out
        assert out.count("Paris is the capital.") == 1
        assert "[*] Related:" in out
        assert f"  - {QUESTIONS[0]}" in out
