"""HTTP exchanges, with library exceptions mapped to llmrelay errors.

Both transports hand back raw response bytes; framing is left to the
decoders.  Non-2xx statuses are raised before any byte is yielded, and
a connection that drops mid-body surfaces as :class:`TransportError`
from the byte iterator.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager

import httpx
import openai

from llmrelay.errors import (
    AuthFailure,
    HTTPError,
    LLMError,
    RateLimited,
    TimedOut,
    TransportError,
)

logger = logging.getLogger(__name__)


def error_for_status(status: int, body: str, label: str) -> HTTPError:
    message = f"{label} API error ({status}): {body[:200]}"
    if status == 401 or "invalid_api_key" in body:
        return AuthFailure(status, body, message)
    if status == 429:
        return RateLimited(status, body, f"Rate Limited (429): {body[:200]}")
    return HTTPError(status, body, message)


def map_httpx_error(e: httpx.HTTPError, timeout: float) -> LLMError:
    if isinstance(e, httpx.TimeoutException):
        return TimedOut(timeout)
    return TransportError(f"{type(e).__name__}: {e}")


async def _guarded(chunks: AsyncIterator[bytes], timeout: float) -> AsyncIterator[bytes]:
    try:
        async for chunk in chunks:
            yield chunk
    except httpx.HTTPError as e:
        raise map_httpx_error(e, timeout) from e


class OpenAITransport:
    """Chat-completions exchanges through the ``openai`` SDK.

    The SDK's own retries are disabled; :class:`~llmrelay.retry.RetryPolicy`
    owns that decision.  Responses are read through
    ``with_streaming_response`` so the raw SSE bytes reach our decoder
    untouched.

    Args:
        base_url: API root, e.g. ``https://api.openai.com/v1``.
        api_key: Bearer token. Local servers accept any value.
        timeout: Per-request timeout handed to the SDK.
        label: Backend name used in error messages.
        http_client: Optional pre-built ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        timeout: float,
        label: str = "OpenAI",
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.label = label
        self.client = openai.AsyncOpenAI(
            base_url=base_url,
            api_key=api_key or "DUMMY",
            max_retries=0,
            timeout=timeout,
            http_client=http_client,
        )

    def _map_error(self, e: openai.OpenAIError) -> LLMError:
        if isinstance(e, openai.APITimeoutError):
            return TimedOut(self.timeout)
        if isinstance(e, openai.APIConnectionError):
            return TransportError(f"{self.label} connection error: {e}")
        if isinstance(e, openai.APIStatusError):
            try:
                body = e.response.text
            except httpx.ResponseNotRead:
                body = e.message
            return error_for_status(e.status_code, body, self.label)
        return TransportError(str(e))

    @asynccontextmanager
    async def stream_chat(self, body: dict) -> AsyncIterator[AsyncIterator[bytes]]:
        try:
            async with self.client.chat.completions.with_streaming_response.create(
                **body
            ) as response:
                async with aclosing(
                    _guarded(response.iter_bytes(), self.timeout)
                ) as chunks:
                    yield chunks
        except openai.OpenAIError as e:
            raise self._map_error(e) from e
        except httpx.HTTPError as e:
            raise map_httpx_error(e, self.timeout) from e

    async def ping(self) -> bool:
        try:
            await self.client.models.list()
        except openai.OpenAIError as e:
            logger.info(f"{self.label} connection test failed: {e}")
            return False
        return True

    async def aclose(self) -> None:
        await self.client.close()


class HTTPTransport:
    """Plain JSON-over-HTTP exchanges with ``httpx``."""

    def __init__(
        self,
        base_url: str,
        timeout: float,
        label: str = "HTTP",
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.label = label
        self.client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout)
        )

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @asynccontextmanager
    async def stream_post(self, path: str, body: dict) -> AsyncIterator[AsyncIterator[bytes]]:
        try:
            async with self.client.stream("POST", self.url(path), json=body) as response:
                if not response.is_success:
                    await response.aread()
                    raise error_for_status(
                        response.status_code, response.text, self.label
                    )
                async with aclosing(
                    _guarded(response.aiter_bytes(), self.timeout)
                ) as chunks:
                    yield chunks
        except httpx.HTTPError as e:
            raise map_httpx_error(e, self.timeout) from e

    async def ping(self, path: str) -> bool:
        try:
            response = await self.client.get(self.url(path))
        except httpx.HTTPError as e:
            logger.info(f"{self.label} connection test failed: {e}")
            return False
        return response.is_success

    async def aclose(self) -> None:
        await self.client.aclose()
