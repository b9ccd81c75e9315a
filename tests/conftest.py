import json

import httpx
import pytest

from llmrelay.events import ProgressEvent


# ---------------------------------------------------------------------------
# Wire-format builders
# ---------------------------------------------------------------------------

def sse_line(payload: dict | str) -> bytes:
    """One ``data:`` event, JSON-encoding dict payloads."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n".encode()


def sse_chunk(
    content: str | None = None,
    tool_calls: list[dict] | None = None,
    finish_reason: str | None = None,
    reasoning: str | None = None,
) -> dict:
    """A ``chat.completion.chunk`` object with a single choice."""
    delta: dict = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    return {
        "object": "chat.completion.chunk",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def sse_body(*chunks: dict, done: bool = True) -> bytes:
    body = b"".join(sse_line(c) for c in chunks)
    if done:
        body += sse_line("[DONE]")
    return body


def ndjson_body(*objects: dict) -> bytes:
    return b"".join(json.dumps(o).encode() + b"\n" for o in objects)


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


async def aiter_chunks(chunks):
    for chunk in chunks:
        yield chunk


# ---------------------------------------------------------------------------
# HTTP doubles
# ---------------------------------------------------------------------------

class RecordingHandler:
    """``httpx.MockTransport`` handler serving queued responses.

    Each queued item is either an ``httpx.Response``, an exception to
    raise, or a callable taking the request and returning a response.
    Every request (with its decoded JSON body) is kept in ``requests``.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []
        self.bodies: list[dict] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        content = request.content
        self.bodies.append(json.loads(content) if content else {})
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = item(request)
            if hasattr(item, "__await__"):
                item = await item
        return item

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def streaming_response(chunks: list[bytes], status: int = 200, **kwargs) -> httpx.Response:
    """A response whose body arrives in the given byte chunks."""
    return httpx.Response(status, content=aiter_chunks(chunks), **kwargs)


class EventRecorder:
    """Observer that keeps every progress event it receives."""

    def __init__(self):
        self.events: list[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def of_type(self, cls) -> list:
        return [e for e in self.events if isinstance(e, cls)]


@pytest.fixture
def recorder():
    return EventRecorder()
