"""Streaming primitives for backend responses.

Decoders turn raw transport bytes into :class:`Frame` objects.  The
:class:`ToolCallAccumulator` reassembles tool calls whose arguments
arrive in fragments across multiple frames.
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from llmrelay.tools import ToolCall, ToolCallFunction

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------

@dataclass
class Frame:
    """Base for all decoded protocol frames."""


@dataclass
class TextDelta(Frame):
    text: str = ""


@dataclass
class ThinkingDelta(Frame):
    """Reasoning output the backend streams separately from content."""

    text: str = ""


@dataclass
class ToolCallDelta(Frame):
    """A fragment of a tool call from a streaming chunk."""

    index: int = 0
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


@dataclass
class FinishReason(Frame):
    reason: str = ""


@dataclass
class Done(Frame):
    """Terminal frame. Nothing after it is decoded."""

    reason: str | None = None


@dataclass
class OtherFrame(Frame):
    """Well-formed payload carrying nothing the accumulator uses."""

    payload: Any = field(default=None)


# ---------------------------------------------------------------------------
# Line-buffered decoding
# ---------------------------------------------------------------------------

class FrameDecoder:
    """Splits a byte stream into lines and decodes each into frames.

    Bytes are decoded incrementally, so multi-byte characters cut by a
    chunk boundary survive.  The unterminated tail of every chunk is
    carried into the next one; :meth:`flush` decodes whatever remains
    when the input ends without a trailing newline.

    Subclasses implement :meth:`parse_line`, returning ``None`` for a
    line that could not be decoded.  Such lines are counted in
    :attr:`dropped` and never raise.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.dropped = 0

    def parse_line(self, line: str) -> list[Frame] | None:
        raise NotImplementedError

    def feed(self, chunk: bytes) -> list[Frame]:
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        frames: list[Frame] = []
        for line in lines:
            frames.extend(self._decode_line(line))
        return frames

    def flush(self) -> list[Frame]:
        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        if not remainder.strip():
            return []
        return self._decode_line(remainder)

    async def decode(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[Frame]:
        """Lazily yield frames from *chunks*, stopping at the first Done."""
        async for chunk in chunks:
            for frame in self.feed(chunk):
                yield frame
                if isinstance(frame, Done):
                    return
        for frame in self.flush():
            yield frame
            if isinstance(frame, Done):
                return

    def _decode_line(self, line: str) -> list[Frame]:
        line = line.rstrip("\r")
        if not line.strip():
            return []
        frames = self.parse_line(line)
        if frames is None:
            self.dropped += 1
            if self.dropped == 1:
                logger.debug(f"Dropped undecodable line: {line[:200]!r}")
            return []
        return frames


# ---------------------------------------------------------------------------
# Tool call reassembly
# ---------------------------------------------------------------------------

@dataclass
class _PartialCall:
    id: str = ""
    name: str = ""
    arguments: str = ""


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments.

    ``id`` and ``name`` are taken from the first fragment that carries
    them; argument fragments are only ever appended.
    """

    def __init__(self) -> None:
        self._pending: dict[int, _PartialCall] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def feed(self, fragment: ToolCallDelta) -> None:
        tc = self._pending.setdefault(fragment.index, _PartialCall())
        if isinstance(fragment.call_id, str) and fragment.call_id and not tc.id:
            tc.id = fragment.call_id
        if isinstance(fragment.name, str) and fragment.name and not tc.name:
            tc.name = fragment.name
        if isinstance(fragment.arguments_delta, str):
            tc.arguments += fragment.arguments_delta

    def finalize(self) -> list[ToolCall]:
        """Return completed tool calls in index order."""
        return [
            ToolCall(
                id=self._pending[i].id or f"call_{i}",
                function=ToolCallFunction(
                    name=self._pending[i].name,
                    arguments=self._pending[i].arguments,
                ),
            )
            for i in sorted(self._pending)
        ]
