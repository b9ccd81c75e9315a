"""Folds decoded frames into one finished response."""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from llmrelay.events import Finished, FirstToken, Observer
from llmrelay.streaming import (
    Done,
    FinishReason,
    Frame,
    TextDelta,
    ThinkingDelta,
    ToolCallAccumulator,
    ToolCallDelta,
)
from llmrelay.tools import ToolCall

logger = logging.getLogger(__name__)

KNOWN_FINISH_REASONS = {"stop", "tool_calls", "length", "content_filter"}
FINISH_REASON_ALIASES = {"function_call": "tool_calls"}


class ResponseState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    ResponseState.IDLE: {ResponseState.CONNECTING},
    ResponseState.CONNECTING: {ResponseState.STREAMING, ResponseState.FAILED},
    ResponseState.STREAMING: {ResponseState.FINALIZING, ResponseState.FAILED},
    ResponseState.FINALIZING: {ResponseState.DONE},
    ResponseState.DONE: set(),
    ResponseState.FAILED: set(),
}


@dataclass
class StreamResult:
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"
    saw_thinking: bool = False
    dropped_frames: int = 0


class ResponseAccumulator:
    """Consumes frames for one response.

    Every non-empty text delta goes to *on_chunk* exactly once, in
    frame order.  One :class:`FirstToken` event fires on the first
    content or reasoning delta, and one :class:`Finished` event fires
    from :meth:`finalize`.

    Args:
        on_chunk: Optional callback receiving each text delta.
        emit: Observer for progress events.
        clock: Monotonic clock, used for first-token latency.
    """

    def __init__(
        self,
        on_chunk: Callable[[str], None] | None = None,
        emit: Observer | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.on_chunk = on_chunk
        self.emit = emit
        self.clock = clock
        self.state = ResponseState.IDLE
        self.saw_thinking = False
        self.done = False
        self.finish_reason: str | None = None
        self._parts: list[str] = []
        self._tool_calls = ToolCallAccumulator()
        self._first_token_emitted = False
        self._started_at = clock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _transition(self, new: ResponseState) -> None:
        if new not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal response transition {self.state.value} -> {new.value}"
            )
        self.state = new

    def connecting(self) -> None:
        self._started_at = self.clock()
        self._transition(ResponseState.CONNECTING)

    def streaming(self) -> None:
        self._transition(ResponseState.STREAMING)

    def fail(self) -> None:
        if self.state in (ResponseState.CONNECTING, ResponseState.STREAMING):
            self._transition(ResponseState.FAILED)

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def feed(self, frame: Frame) -> None:
        if isinstance(frame, TextDelta):
            if frame.text:
                self._first_token(thinking=False)
                self._parts.append(frame.text)
                if self.on_chunk is not None:
                    self.on_chunk(frame.text)
        elif isinstance(frame, ThinkingDelta):
            if frame.text:
                self.saw_thinking = True
                self._first_token(thinking=True)
        elif isinstance(frame, ToolCallDelta):
            self._tool_calls.feed(frame)
        elif isinstance(frame, FinishReason):
            self._set_finish_reason(frame.reason)
        elif isinstance(frame, Done):
            self._set_finish_reason(frame.reason)
            self.done = True

    def finalize(self, dropped_frames: int = 0) -> StreamResult:
        self._transition(ResponseState.FINALIZING)
        tool_calls = self._tool_calls.finalize()
        finish_reason = self.finish_reason
        if finish_reason is None:
            finish_reason = "tool_calls" if tool_calls else "stop"
        result = StreamResult(
            content=self.text,
            tool_calls=tool_calls,
            finish_reason=finish_reason,
            saw_thinking=self.saw_thinking,
            dropped_frames=dropped_frames,
        )
        self._emit(Finished(
            output_length=len(result.content),
            dropped_frames=dropped_frames,
        ))
        self._transition(ResponseState.DONE)
        return result

    def _first_token(self, thinking: bool) -> None:
        if self._first_token_emitted:
            return
        self._first_token_emitted = True
        self._emit(FirstToken(
            latency=self.clock() - self._started_at,
            thinking=thinking,
        ))

    def _set_finish_reason(self, reason: str | None) -> None:
        if not reason:
            return
        reason = FINISH_REASON_ALIASES.get(reason, reason)
        if reason not in KNOWN_FINISH_REASONS:
            logger.debug(f"Unknown finish reason {reason!r}, treating as stop")
            reason = "stop"
        self.finish_reason = reason

    def _emit(self, event) -> None:
        if self.emit is not None:
            self.emit(event)
