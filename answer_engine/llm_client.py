"""OpenAI-compatible completion client with a cancellable streaming adapter."""
from __future__ import annotations

import asyncio
import contextlib
import inspect
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from answer_engine.config import settings
from answer_engine.exceptions import StreamError, TurnCancelled
from answer_engine.models.events import StreamEvent, TextDelta, ToolArgsDelta
from answer_engine.services import logger as log_service
from answer_engine.services.cancellation import CancellationToken


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class ToolSpec:
    """A function tool the model is forced to call."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters or {"type": "object", "properties": {}},
            },
        }

    def forced_choice(self) -> dict[str, Any]:
        return {"type": "function", "function": {"name": self.name}}


@dataclass
class CompletionResponse:
    text: str
    tool_arguments: str | None
    usage: Usage


def _map_usage(usage: Any) -> Usage:
    return Usage(
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )


class CompletionStream:
    """Wraps one streamed chat completion and exposes it as stream events.

    Events stop as soon as the token is cancelled. A transport error after
    cancellation closes the sequence quietly; any other error surfaces once as
    ``StreamError``.
    """

    def __init__(
        self,
        stream_coro: Any,
        token: CancellationToken,
        *,
        model: str,
        caller: str,
    ):
        self._stream_coro = stream_coro
        self._token = token
        self._stream: Any | None = None
        self._usage = Usage()
        self._model = model
        self._caller = caller
        self._started_at = 0.0
        self._unsubscribe = lambda: None
        self._close_task: asyncio.Task | None = None

    async def __aenter__(self) -> "CompletionStream":
        self._started_at = time.monotonic()
        if self._token.cancelled:
            if inspect.iscoroutine(self._stream_coro):
                self._stream_coro.close()
            return self
        try:
            self._stream = await self._stream_coro
        except Exception as e:
            if self._token.cancelled:
                return self
            log_service.log_llm_call(
                model=self._model,
                caller=self._caller,
                duration_ms=self._elapsed_ms(),
                status="failed",
                error=str(e),
            )
            raise StreamError(f"Completion stream could not be opened: {e}", cause=e) from e
        self._unsubscribe = self._token.add_listener(self._abort_transport)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._unsubscribe()
        if self._stream is not None:
            if self._close_task is not None:
                # The cancel listener already started closing the transport.
                with contextlib.suppress(Exception):
                    await self._close_task
            else:
                await self._stream.close()
            log_service.log_llm_call(
                model=self._model,
                caller=self._caller,
                input_tokens=self._usage.input_tokens,
                output_tokens=self._usage.output_tokens,
                duration_ms=self._elapsed_ms(),
                status="cancelled" if self._token.cancelled else "success",
            )

    def _elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started_at) * 1000)

    def _abort_transport(self) -> None:
        stream = self._stream
        if stream is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._close_task = loop.create_task(stream.close())

    @property
    def usage(self) -> Usage:
        return self._usage

    async def events(self) -> AsyncIterator[StreamEvent]:
        if self._stream is None:
            return
        try:
            async for chunk in self._stream:
                if self._token.cancelled:
                    return
                usage = getattr(chunk, "usage", None)
                if usage:
                    self._usage = _map_usage(usage)

                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                delta = getattr(choices[0], "delta", None)
                if not delta:
                    continue

                text = getattr(delta, "content", None)
                if text:
                    yield TextDelta(text)

                for tool_call in getattr(delta, "tool_calls", None) or []:
                    function = getattr(tool_call, "function", None)
                    fragment = getattr(function, "arguments", None) if function else None
                    if fragment and not self._token.cancelled:
                        yield ToolArgsDelta(fragment)
        except Exception as e:
            if self._token.cancelled:
                return
            log_service.log_llm_call(
                model=self._model,
                caller=self._caller,
                duration_ms=self._elapsed_ms(),
                status="failed",
                error=str(e),
            )
            raise StreamError(f"Completion stream failed: {e}", cause=e) from e


class CompletionsAdapter:
    """Thin adapter over ``AsyncOpenAI.chat.completions``."""

    def __init__(self, openai_client: Any, model: str, *, max_tokens: int = 4096):
        self._client = openai_client
        self.model = model
        self.max_tokens = max_tokens

    @staticmethod
    def _temperature_for_model(model: str, temperature: float) -> float:
        # Some OpenAI GPT-5-compatible gateways reject temperature=0.
        lowered = (model or "").lower()
        if "gpt-5" in lowered:
            return 1
        return temperature

    def _build_kwargs(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str | None,
        max_tokens: int | None,
        temperature: float | None,
        tool: ToolSpec | None,
        json_mode: bool,
    ) -> dict[str, Any]:
        active_model = model or self.model
        kwargs: dict[str, Any] = {
            "model": active_model,
            "messages": messages,
            "max_tokens": max_tokens or self.max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = self._temperature_for_model(active_model, temperature)
        if tool is not None:
            kwargs["tools"] = [tool.to_openai()]
            kwargs["tool_choice"] = tool.forced_choice()
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    async def create(
        self,
        messages: list[dict[str, Any]],
        *,
        caller: str,
        token: CancellationToken | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        tool: ToolSpec | None = None,
        json_mode: bool = False,
    ) -> CompletionResponse:
        """Run one non-streamed completion."""
        if token is not None:
            token.raise_if_cancelled()
        kwargs = self._build_kwargs(
            messages,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            tool=tool,
            json_mode=json_mode,
        )

        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except Exception as e:
            if token is not None and token.cancelled:
                raise TurnCancelled() from e
            log_service.log_llm_call(
                model=kwargs["model"],
                caller=caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="failed",
                error=str(e),
            )
            raise StreamError(f"Completion request failed: {e}", cause=e) from e

        usage = _map_usage(getattr(response, "usage", None))
        log_service.log_llm_call(
            model=kwargs["model"],
            caller=caller,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        if token is not None:
            token.raise_if_cancelled()

        choice = response.choices[0].message
        tool_arguments = None
        for tc in getattr(choice, "tool_calls", None) or []:
            tool_arguments = getattr(tc.function, "arguments", None) or "{}"
            break
        return CompletionResponse(
            text=getattr(choice, "content", None) or "",
            tool_arguments=tool_arguments,
            usage=usage,
        )

    def stream(
        self,
        messages: list[dict[str, Any]],
        *,
        token: CancellationToken,
        caller: str,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        tool: ToolSpec | None = None,
    ) -> CompletionStream:
        kwargs = self._build_kwargs(
            messages,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            tool=tool,
            json_mode=False,
        )
        stream_coro = self._client.chat.completions.create(
            **kwargs,
            stream=True,
            stream_options={"include_usage": True},
        )
        return CompletionStream(stream_coro, token, model=kwargs["model"], caller=caller)

    async def stream_events(
        self,
        messages: list[dict[str, Any]],
        *,
        token: CancellationToken,
        caller: str,
        tool: ToolSpec | None = None,
        model: str | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield text or tool-argument events in backend order until end or cancel."""
        async with self.stream(
            messages, token=token, caller=caller, tool=tool, model=model
        ) as stream:
            async for event in stream.events():
                if token.cancelled:
                    return
                yield event


def get_model() -> str:
    """Get the active model id."""
    return settings.default_model


def get_client(model: str | None = None) -> CompletionsAdapter:
    """Build the completions adapter via the OpenAI SDK."""
    from openai import AsyncOpenAI

    base_url = settings.openai_base_url.strip() or "https://api.openai.com/v1"
    openai_client = AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=base_url,
    )
    return CompletionsAdapter(
        openai_client,
        model=model or get_model(),
        max_tokens=settings.completion_max_tokens,
    )
