"""Newline-delimited JSON decoder for Ollama's native API."""

from __future__ import annotations

import json

from llmrelay.streaming import (
    Done,
    Frame,
    FrameDecoder,
    OtherFrame,
    TextDelta,
    ThinkingDelta,
    ToolCallDelta,
)


class LineDelimitedDecoder(FrameDecoder):
    """Each line is one JSON object; ``"done": true`` ends the stream.

    Handles both ``/api/generate`` lines (``response``) and ``/api/chat``
    objects (``message``), including the single non-streaming chat
    object returned for tool calls.
    """

    def parse_line(self, line: str) -> list[Frame] | None:
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None

        frames: list[Frame] = []
        if _text(payload.get("thinking")):
            frames.append(ThinkingDelta(text=payload["thinking"]))
        if _text(payload.get("response")):
            frames.append(TextDelta(text=payload["response"]))

        message = payload.get("message")
        tool_frames: list[ToolCallDelta] = []
        if isinstance(message, dict):
            if _text(message.get("thinking")):
                frames.append(ThinkingDelta(text=message["thinking"]))
            if _text(message.get("content")):
                frames.append(TextDelta(text=message["content"]))
            try:
                tool_frames = _tool_call_frames(message.get("tool_calls") or [])
            except (AttributeError, TypeError):
                return None
            frames.extend(tool_frames)

        if payload.get("done") is True:
            frames.append(Done(reason=payload.get("done_reason")))
        if not frames:
            frames.append(OtherFrame(payload=payload))
        return frames


def _tool_call_frames(tool_calls: list) -> list[ToolCallDelta]:
    # Ollama returns whole calls with arguments as an object, not fragments.
    frames = []
    for i, tc in enumerate(tool_calls):
        function = tc.get("function") or {}
        arguments = function.get("arguments", {})
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        frames.append(ToolCallDelta(
            index=i,
            call_id=tc.get("id") or f"call_{i}",
            name=function.get("name"),
            arguments_delta=arguments,
        ))
    return frames


def _text(value) -> str:
    return value if isinstance(value, str) else ""
