from __future__ import annotations

import time
from typing import AsyncIterator, Callable

from answer_engine.models.events import StreamEvent, TextDelta
from answer_engine.models.messages import Source, StandardMessage
from answer_engine.services.cancellation import CancellationToken

SnapshotSink = Callable[[StandardMessage], None]


class ResponseAggregator:
    """Accumulates answer tokens and emits throttled message snapshots.

    Accumulation is synchronous and keeps every token. Only emission is
    coalesced: the first token is emitted at once, later ones at most once per
    ``interval`` seconds, and ``finish`` always emits the full text. Nothing is
    emitted once the token is cancelled.
    """

    def __init__(
        self,
        token: CancellationToken,
        sink: SnapshotSink,
        *,
        interval: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._token = token
        self._sink = sink
        self._interval = interval
        self._clock = clock
        self._text = ""
        self._last_emit_at: float | None = None
        self.emitted = 0

    @property
    def text(self) -> str:
        return self._text

    def add(self, text: str) -> None:
        if not text:
            return
        self._text += text

        now = self._clock()
        if self._last_emit_at is None or now - self._last_emit_at >= self._interval:
            self._emit(StandardMessage(content=self._text), now)

    async def consume(self, events: AsyncIterator[StreamEvent]) -> str:
        async for event in events:
            if self._token.cancelled:
                break
            if isinstance(event, TextDelta):
                self.add(event.text)
        return self._text

    def finish(
        self, sources: list[Source], related: list[str]
    ) -> StandardMessage | None:
        """Emit the terminal snapshot unconditionally, unless cancelled."""
        message = StandardMessage(
            content=self._text, sources=list(sources), related=list(related)
        )
        if not self._emit(message, self._clock()):
            return None
        return message

    def _emit(self, message: StandardMessage, now: float) -> bool:
        if self._token.cancelled:
            return False
        self._last_emit_at = now
        self.emitted += 1
        self._sink(message)
        return True
