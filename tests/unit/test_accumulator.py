"""Unit tests for ResponseAccumulator."""

import pytest

from llmrelay.accumulator import ResponseAccumulator, ResponseState
from llmrelay.events import Finished, FirstToken
from llmrelay.streaming import (
    Done,
    FinishReason,
    OtherFrame,
    TextDelta,
    ThinkingDelta,
    ToolCallDelta,
)


class FakeClock:
    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        return self.times.pop(0) if len(self.times) > 1 else self.times[0]


def _streaming(**kwargs) -> ResponseAccumulator:
    acc = ResponseAccumulator(**kwargs)
    acc.connecting()
    acc.streaming()
    return acc


class TestText:
    def test_deltas_concatenate_and_reach_callback(self):
        seen = []
        acc = _streaming(on_chunk=seen.append)
        for part in ("Hel", "lo", "", "!"):
            acc.feed(TextDelta(text=part))
        result = acc.finalize()

        assert seen == ["Hel", "lo", "!"]
        assert result.content == "Hello!"
        assert result.finish_reason == "stop"

    def test_other_frames_ignored(self):
        acc = _streaming()
        acc.feed(OtherFrame(payload={"usage": {}}))
        acc.feed(TextDelta(text="x"))
        assert acc.finalize().content == "x"

    def test_thinking_not_part_of_content(self):
        acc = _streaming()
        acc.feed(ThinkingDelta(text="pondering"))
        acc.feed(TextDelta(text="answer"))
        result = acc.finalize()

        assert result.content == "answer"
        assert result.saw_thinking is True


class TestToolCalls:
    def test_fragments_reassembled(self):
        acc = _streaming()
        acc.feed(ToolCallDelta(index=0, call_id="a", name="f", arguments_delta='{"x":'))
        acc.feed(ToolCallDelta(index=0, arguments_delta="1"))
        acc.feed(ToolCallDelta(index=0, arguments_delta="}"))
        acc.feed(FinishReason(reason="tool_calls"))
        result = acc.finalize()

        assert len(result.tool_calls) == 1
        tc = result.tool_calls[0]
        assert (tc.id, tc.function.name, tc.function.arguments) == ("a", "f", '{"x":1}')
        assert result.finish_reason == "tool_calls"

    def test_reason_defaults_to_tool_calls(self):
        acc = _streaming()
        acc.feed(ToolCallDelta(index=0, call_id="a", name="f", arguments_delta="{}"))
        assert acc.finalize().finish_reason == "tool_calls"


class TestFinishReason:
    @pytest.mark.parametrize("raw, expected", [
        ("stop", "stop"),
        ("length", "length"),
        ("content_filter", "content_filter"),
        ("function_call", "tool_calls"),
        ("eos_token", "stop"),
    ])
    def test_normalization(self, raw, expected):
        acc = _streaming()
        acc.feed(FinishReason(reason=raw))
        assert acc.finalize().finish_reason == expected

    def test_done_reason_and_flag(self):
        acc = _streaming()
        acc.feed(Done(reason="length"))
        assert acc.done
        assert acc.finalize().finish_reason == "length"

    def test_done_without_reason_keeps_earlier(self):
        acc = _streaming()
        acc.feed(FinishReason(reason="length"))
        acc.feed(Done())
        assert acc.finalize().finish_reason == "length"


class TestEvents:
    def test_first_token_once_with_latency(self):
        events = []
        acc = ResponseAccumulator(emit=events.append, clock=FakeClock(0.0, 10.0, 10.5))
        acc.connecting()
        acc.streaming()
        acc.feed(TextDelta(text="a"))
        acc.feed(TextDelta(text="b"))
        acc.finalize(dropped_frames=2)

        first = [e for e in events if isinstance(e, FirstToken)]
        assert len(first) == 1
        assert first[0].latency == pytest.approx(0.5)
        assert first[0].thinking is False
        assert isinstance(events[-1], Finished)
        assert events[-1].output_length == 2
        assert events[-1].dropped_frames == 2

    def test_first_token_from_thinking(self):
        events = []
        acc = _streaming(emit=events.append)
        acc.feed(ThinkingDelta(text="..."))
        acc.feed(TextDelta(text="a"))

        first = [e for e in events if isinstance(e, FirstToken)]
        assert len(first) == 1
        assert first[0].thinking is True


class TestLifecycle:
    def test_happy_path_states(self):
        acc = ResponseAccumulator()
        assert acc.state is ResponseState.IDLE
        acc.connecting()
        assert acc.state is ResponseState.CONNECTING
        acc.streaming()
        assert acc.state is ResponseState.STREAMING
        acc.finalize()
        assert acc.state is ResponseState.DONE

    def test_fail_while_streaming(self):
        acc = _streaming()
        acc.fail()
        assert acc.state is ResponseState.FAILED
        with pytest.raises(RuntimeError):
            acc.finalize()

    def test_fail_before_connect_is_noop(self):
        acc = ResponseAccumulator()
        acc.fail()
        assert acc.state is ResponseState.IDLE

    def test_finalize_twice_rejected(self):
        acc = _streaming()
        acc.finalize()
        with pytest.raises(RuntimeError):
            acc.finalize()

    def test_streaming_requires_connecting(self):
        with pytest.raises(RuntimeError):
            ResponseAccumulator().streaming()
