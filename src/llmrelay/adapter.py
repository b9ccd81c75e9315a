import asyncio
import dataclasses
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from contextlib import aclosing

from llmrelay.accumulator import ResponseAccumulator, StreamResult
from llmrelay.errors import EmptyResponse, TimedOut, UnsupportedOperation
from llmrelay.events import CallStarted, Observer, ProgressEvent, log_observer
from llmrelay.gate import ConcurrencyGate
from llmrelay.instrumentation import completion_span, record_error, record_result
from llmrelay.provider import ModelProvider
from llmrelay.request import CompletionOptions, LLMRequest, ToolCallOptions
from llmrelay.retry import RetryPolicy
from llmrelay.sanitize import clean, expects_json, repair_json_text
from llmrelay.template import TemplateValue, prepare_prompt
from llmrelay.tools import Tool, ToolCallResponse

logger = logging.getLogger(__name__)


class Adapter:
    """One backend behind the normalized completion contract.

    The adapter owns every policy decision: the concurrency gate,
    prompt templating, retries and output sanitization.  The
    *provider* only supplies request bodies, the transport exchange
    and the frame decoder.

    Every public call holds one gate slot from before the prompt is
    prepared until the response is decoded; the slot is returned on
    success, failure, timeout and cancellation alike.

    Args:
        provider: Backend capability value (see ``llmrelay.provider``).
        observer: Receives progress events. Defaults to logging them.
        sleep: Coroutine used for retry backoff.
        clock: Monotonic clock for first-token latency.
    """

    def __init__(
        self,
        provider: ModelProvider,
        observer: Observer | None = log_observer,
        sleep: Callable = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.observer = observer
        self.clock = clock
        self.gate = ConcurrencyGate(provider.config.concurrency)
        self.retry = RetryPolicy(
            max_attempts=provider.config.max_attempts,
            backoff_unit=provider.config.backoff_unit,
            is_fatal=provider.is_fatal,
            sleep=sleep,
            emit=self._emit,
        )

    @property
    def name(self) -> str:
        return self.provider.name

    @property
    def model_name(self) -> str:
        return self.provider.model

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def complete(
        self,
        prompt: str,
        variables: Mapping[str, TemplateValue] | None = None,
        options: CompletionOptions | None = None,
    ) -> str:
        """Complete *prompt* and return cleaned text.

        When JSON is expected the repaired JSON text is returned
        instead; see :func:`llmrelay.sanitize.repair_json_text`.

        Raises:
            EmptyResponse: The backend produced only whitespace.
            NoJSONFound: JSON was expected but none was present.
            InvalidJSON: JSON was present but could not be repaired.
        """
        options = options or CompletionOptions()
        json_expected = options.expects_json
        if json_expected is None:
            json_expected = options.json_schema is not None or expects_json(prompt)

        async with self.gate:
            request = LLMRequest(
                prompt=prepare_prompt(prompt, variables),
                max_tokens=options.max_tokens,
                expects_json=json_expected,
                json_schema=options.json_schema,
            )
            result = await self.retry.run(
                lambda attempt: self._exchange(request, "complete", attempt)
            )

        if not result.content.strip():
            raise EmptyResponse()
        if json_expected:
            return repair_json_text(result.content)
        return clean(result.content)

    async def complete_with_tools(
        self,
        prompt: str,
        variables: Mapping[str, TemplateValue] | None,
        tools: Sequence[Tool | dict],
        options: ToolCallOptions | None = None,
    ) -> ToolCallResponse:
        if not self.provider.supports_tools:
            raise UnsupportedOperation(f"Tool calling not supported by {self.name}")
        options = options or ToolCallOptions()
        tool_defs = tuple(
            t if isinstance(t, Tool) else Tool.model_validate(t) for t in tools
        )

        async with self.gate:
            request = LLMRequest(
                prompt=prepare_prompt(prompt, variables),
                max_tokens=options.max_tokens,
                tools=tool_defs,
                tool_choice=options.tool_choice,
            )
            result = await self.retry.run(
                lambda attempt: self._exchange(request, "tools", attempt)
            )

        logger.info(
            f"Tool response: {len(result.content)} chars, "
            f"{len(result.tool_calls)} tool calls"
        )
        return ToolCallResponse(
            content=result.content or None,
            tool_calls=result.tool_calls,
            finish_reason=result.finish_reason,
        )

    async def stream(
        self,
        prompt: str,
        variables: Mapping[str, TemplateValue] | None,
        on_chunk: Callable[[str], None],
        options: CompletionOptions | None = None,
    ) -> str:
        """Stream a completion, passing each text delta to *on_chunk*.

        Never retried: a second attempt would repeat deltas the caller
        has already seen.
        """
        max_tokens = options.max_tokens if options else None
        async with self.gate:
            request = LLMRequest(
                prompt=prepare_prompt(prompt, variables),
                max_tokens=max_tokens,
            )
            result = await self._exchange(request, "stream", on_chunk=on_chunk)
        return clean(result.content)

    async def test_connection(self) -> bool:
        return await self.provider.ping()

    async def aclose(self) -> None:
        await self.provider.aclose()

    async def __aenter__(self) -> "Adapter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Exchange
    # ------------------------------------------------------------------

    async def _exchange(
        self,
        request: LLMRequest,
        kind: str,
        attempt: int = 1,
        on_chunk: Callable[[str], None] | None = None,
    ) -> StreamResult:
        self._emit(CallStarted(kind=kind, model=self.model_name, attempt=attempt))
        acc = ResponseAccumulator(on_chunk=on_chunk, emit=self._emit, clock=self.clock)
        decoder = self.provider.decoder()
        timeout = self.provider.timeout

        async with completion_span(self.name, self.model_name) as span:
            acc.connecting()
            try:
                async with asyncio.timeout(timeout):
                    async with self.provider.open_stream(request) as chunks:
                        acc.streaming()
                        async with aclosing(decoder.decode(chunks)) as frames:
                            async for frame in frames:
                                acc.feed(frame)
            except TimeoutError as e:
                acc.fail()
                error = TimedOut(timeout)
                record_error(span, error)
                logger.error(f"LLM Error: {error}")
                raise error from e
            except Exception as e:
                acc.fail()
                record_error(span, e)
                logger.error(f"LLM Error: {e}")
                raise

            result = acc.finalize(dropped_frames=decoder.dropped)
            record_result(span, result)
        return result

    def _emit(self, event: ProgressEvent) -> None:
        if self.observer is not None:
            self.observer(dataclasses.replace(event, source=self.name))
