"""Tests for throttled answer aggregation."""
import pytest

from answer_engine.models.events import TextDelta, ToolArgsDelta
from answer_engine.models.messages import Source
from answer_engine.services.aggregator import ResponseAggregator
from answer_engine.services.cancellation import CancellationToken


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _aggregator(token=None, interval=0.05):
    clock = FakeClock()
    snapshots = []
    aggregator = ResponseAggregator(
        token or CancellationToken(),
        snapshots.append,
        interval=interval,
        clock=clock,
    )
    return aggregator, snapshots, clock


class TestResponseAggregator:
    def test_first_token_is_emitted_immediately(self):
        aggregator, snapshots, _ = _aggregator()

        aggregator.add("Hello")

        assert [s.content for s in snapshots] == ["Hello"]

    def test_tokens_within_interval_are_coalesced_not_dropped(self):
        aggregator, snapshots, clock = _aggregator()

        aggregator.add("a")
        clock.now = 0.01
        aggregator.add("b")
        clock.now = 0.02
        aggregator.add("c")
        clock.now = 0.06
        aggregator.add("d")

        assert [s.content for s in snapshots] == ["a", "abcd"]
        assert aggregator.text == "abcd"

    def test_snapshots_grow_monotonically(self):
        aggregator, snapshots, clock = _aggregator(interval=0.0)

        for index, token in enumerate(["The", " sky", " is", " blue"]):
            clock.now = index * 0.1
            aggregator.add(token)

        contents = [s.content for s in snapshots]
        for earlier, later in zip(contents, contents[1:]):
            assert later.startswith(earlier)
            assert len(later) >= len(earlier)

    def test_emission_rate_is_bounded(self):
        aggregator, snapshots, clock = _aggregator(interval=0.05)

        # 1000 tokens over one second of fake time.
        for i in range(1000):
            clock.now = i * 0.001
            aggregator.add("x")

        assert len(snapshots) <= 1 + 1.0 / 0.05 + 1
        assert aggregator.text == "x" * 1000

    def test_finish_always_emits_full_text_with_extras(self):
        aggregator, snapshots, clock = _aggregator()
        source = Source(id="https://a.com", title="A", url="https://a.com")

        aggregator.add("a")
        clock.now = 0.01
        aggregator.add("b")
        final = aggregator.finish([source], ["Why?"])

        assert final is not None
        assert final.content == "ab"
        assert final.sources == [source]
        assert final.related == ["Why?"]
        assert snapshots[-1] == final

    def test_nothing_is_emitted_after_cancel(self):
        token = CancellationToken()
        aggregator, snapshots, clock = _aggregator(token=token)

        aggregator.add("a")
        token.cancel()
        clock.now = 1.0
        aggregator.add("b")

        assert aggregator.finish([], []) is None
        assert [s.content for s in snapshots] == ["a"]

    @pytest.mark.asyncio
    async def test_consume_ignores_tool_fragments(self):
        aggregator, snapshots, _ = _aggregator()

        async def events():
            yield TextDelta("Hi")
            yield ToolArgsDelta('{"questions"')
            yield TextDelta("!")

        text = await aggregator.consume(events())

        assert text == "Hi!"
