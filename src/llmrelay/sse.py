"""Server-Sent Events decoder for OpenAI-compatible chat streams."""

from __future__ import annotations

import json

from llmrelay.streaming import (
    Done,
    FinishReason,
    Frame,
    FrameDecoder,
    OtherFrame,
    TextDelta,
    ThinkingDelta,
    ToolCallDelta,
)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class EventStreamDecoder(FrameDecoder):
    """Decodes ``data: <json>`` lines terminated by ``data: [DONE]``.

    Comment lines and the other SSE fields (``event:``, ``id:``,
    ``retry:``) are skipped without counting as errors.
    """

    def parse_line(self, line: str) -> list[Frame] | None:
        if not line.startswith(DATA_PREFIX):
            return []
        data = line[len(DATA_PREFIX):]
        if data.startswith(" "):
            data = data[1:]
        data = data.strip()
        if data == DONE_SENTINEL:
            return [Done()]
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None
        try:
            return parse_chunk(payload)
        except (AttributeError, KeyError, TypeError):
            return None


def parse_chunk(payload: dict) -> list[Frame]:
    """Map one ``chat.completion.chunk`` object to frames."""
    choices = payload.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return [OtherFrame(payload=payload)]
    choice = choices[0]
    delta = choice.get("delta") or {}

    frames: list[Frame] = []
    if _text(delta.get("reasoning_content")):
        frames.append(ThinkingDelta(text=delta["reasoning_content"]))
    if _text(delta.get("content")):
        frames.append(TextDelta(text=delta["content"]))
    for tc in delta.get("tool_calls") or []:
        function = tc.get("function") or {}
        index = tc.get("index", 0)
        if not isinstance(index, int):
            raise TypeError(f"tool call index must be an int, got {index!r}")
        frames.append(ToolCallDelta(
            index=index,
            call_id=tc.get("id"),
            name=function.get("name"),
            arguments_delta=function.get("arguments"),
        ))
    if choice.get("finish_reason"):
        frames.append(FinishReason(reason=choice["finish_reason"]))
    if not frames:
        frames.append(OtherFrame(payload=payload))
    return frames


def _text(value) -> str:
    return value if isinstance(value, str) else ""
