"""Backend capability values.

A provider knows how to build a request body for its backend, open the
transport exchange, and which frame decoder reads the response.  It
holds no policy: concurrency, retries, templating and sanitization all
live in :class:`~llmrelay.adapter.Adapter`.
"""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from collections.abc import AsyncIterator

import httpx

from llmrelay.config import BackendConfig, MLXConfig, OllamaConfig, OpenAIConfig
from llmrelay.errors import is_fatal_error
from llmrelay.ndjson import LineDelimitedDecoder
from llmrelay.request import LLMRequest
from llmrelay.sse import EventStreamDecoder
from llmrelay.streaming import FrameDecoder
from llmrelay.transport import HTTPTransport, OpenAITransport

logger = logging.getLogger(__name__)

ByteStream = AbstractAsyncContextManager[AsyncIterator[bytes]]


class ModelProvider:
    name = "provider"
    supports_tools = False

    def __init__(self, config: BackendConfig):
        self.config = config

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def timeout(self) -> float:
        return self.config.timeout

    def build_request_body(self, request: LLMRequest) -> dict:
        raise NotImplementedError

    def open_stream(self, request: LLMRequest) -> ByteStream:
        raise NotImplementedError

    def decoder(self) -> FrameDecoder:
        raise NotImplementedError

    def is_fatal(self, exc: BaseException) -> bool:
        return is_fatal_error(exc)

    async def ping(self) -> bool:
        return False

    async def aclose(self) -> None:
        pass


class OpenAICompatibleProvider(ModelProvider):
    """Chat-completions backends speaking Server-Sent Events."""

    max_tokens_field = "max_tokens"

    def __init__(
        self,
        config: BackendConfig,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(config)
        self.transport = OpenAITransport(
            base_url=config.endpoint,
            api_key=api_key,
            timeout=config.timeout,
            label=self.name,
            http_client=http_client,
        )

    def temperature(self, request: LLMRequest) -> float | None:
        return 0.1 if request.expects_json else 0.3

    def build_request_body(self, request: LLMRequest) -> dict:
        body: dict = {
            "model": self.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "stream": True,
        }
        temperature = self.temperature(request)
        if temperature is not None:
            body["temperature"] = temperature
        if request.max_tokens and request.max_tokens > 0:
            body[self.max_tokens_field] = request.max_tokens
        if request.tools:
            body["tools"] = [t.to_wire() for t in request.tools]
            body["tool_choice"] = request.tool_choice or "auto"
        return body

    def open_stream(self, request: LLMRequest) -> ByteStream:
        return self.transport.stream_chat(self.build_request_body(request))

    def decoder(self) -> FrameDecoder:
        return EventStreamDecoder()

    async def ping(self) -> bool:
        return await self.transport.ping()

    async def aclose(self) -> None:
        await self.transport.aclose()


class OpenAIProvider(OpenAICompatibleProvider):
    name = "openai"
    supports_tools = True
    max_tokens_field = "max_completion_tokens"

    def __init__(
        self,
        config: OpenAIConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not config.api_key:
            logger.warning("No OpenAI API key configured; requests will fail with 401")
        super().__init__(config, api_key=config.api_key, http_client=http_client)

    def temperature(self, request: LLMRequest) -> float | None:
        # These model families only accept the default temperature.
        if any(m in self.model for m in ("gpt-5", "o3", "o4")):
            return None
        return super().temperature(request)

    def build_request_body(self, request: LLMRequest) -> dict:
        body = super().build_request_body(request)
        if request.tools:
            return body
        if request.json_schema is not None:
            body["response_format"] = request.json_schema.to_response_format()
        elif request.expects_json and "nano" not in self.model:
            body["response_format"] = {"type": "json_object"}
        return body

    def is_fatal(self, exc: BaseException) -> bool:
        return is_fatal_error(exc) or "invalid_api_key" in str(exc)


class MLXProvider(OpenAICompatibleProvider):
    """``mlx_lm.server`` and other local OpenAI-compatible servers."""

    name = "mlx"

    def __init__(
        self,
        config: MLXConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(config, api_key="DUMMY", http_client=http_client)


class OllamaProvider(ModelProvider):
    """Ollama's native API, which streams newline-delimited JSON."""

    name = "ollama"
    supports_tools = True

    def __init__(
        self,
        config: OllamaConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(config)
        self.transport = HTTPTransport(
            base_url=config.endpoint,
            timeout=config.timeout,
            label=self.name,
            http_client=http_client,
        )

    def _options(self, request: LLMRequest) -> dict:
        return {
            "temperature": 0.1,
            "num_ctx": self.config.num_ctx,
            "num_predict": request.max_tokens or self.config.num_predict,
        }

    def build_request_body(self, request: LLMRequest) -> dict:
        if request.tools:
            # Tool calling is more reliable without streaming.
            return {
                "model": self.model,
                "messages": [{"role": "user", "content": request.prompt}],
                "stream": False,
                "tools": [t.to_wire() for t in request.tools],
                "options": self._options(request),
            }
        body: dict = {
            "model": self.model,
            "prompt": request.prompt,
            "stream": True,
            "options": self._options(request),
        }
        if request.json_schema is not None:
            body["format"] = request.json_schema.schema_
        elif request.expects_json:
            body["format"] = "json"
        return body

    def open_stream(self, request: LLMRequest) -> ByteStream:
        path = "/api/chat" if request.tools else "/api/generate"
        return self.transport.stream_post(path, self.build_request_body(request))

    def decoder(self) -> FrameDecoder:
        return LineDelimitedDecoder()

    async def ping(self) -> bool:
        return await self.transport.ping("/api/tags")

    async def aclose(self) -> None:
        await self.transport.aclose()
