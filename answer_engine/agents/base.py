from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from answer_engine.exceptions import ParseFailure
from answer_engine.llm_client import CompletionsAdapter
from answer_engine.services.cancellation import CancellationToken


@dataclass
class AgentContext:
    """Inputs shared by every pipeline stage of one turn."""

    query: str
    token: CancellationToken
    history: list[dict[str, str]] = field(default_factory=list)
    turn_id: str = ""


class BaseAgent:
    """Base for the Pro-mode pipeline agents.

    Subclasses define ``name`` and ``execute``. The completion client is
    injected so tests can substitute a fake.
    """

    name: str = "base"

    def __init__(self, llm: CompletionsAdapter, model: str | None = None):
        self.llm = llm
        self.model = model or None

    async def _complete_json(
        self,
        ctx: AgentContext,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 2048,
    ) -> tuple[dict[str, Any], str]:
        """Run one JSON-mode completion; return the parsed object and the raw text."""
        messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        messages.extend(ctx.history)
        messages.append({"role": "user", "content": user_prompt})

        response = await self.llm.create(
            messages,
            caller=f"agent.{self.name}",
            token=ctx.token,
            model=self.model,
            max_tokens=max_tokens,
            json_mode=True,
        )
        return self._extract_json_object(response.text), response.text

    @staticmethod
    def _extract_json_object(raw_text: str) -> dict[str, Any]:
        text = raw_text.strip()
        if text.startswith("```"):
            parts = text.split("```")
            if len(parts) >= 2:
                text = parts[1]
            if text.startswith("json"):
                text = text[4:]
            text = text.strip()
        start = text.find("{")
        end = text.rfind("}")
        if start < 0 or end <= start:
            raise ParseFailure("JSON object not found in model output")
        try:
            parsed = json.loads(text[start : end + 1])
        except json.JSONDecodeError as e:
            raise ParseFailure(f"Model output is not valid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ParseFailure("Model output is not a JSON object")
        return parsed
