"""Optional OpenTelemetry instrumentation for llmrelay.

Call ``llmrelay.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; the package works
identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "llmrelay") -> None:
    """Enable OpenTelemetry tracing for every adapter call.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install llmrelay[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())

        import llmrelay
        llmrelay.instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install llmrelay[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured, spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("llmrelay instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def completion_span(system: str, model: str, operation: str = "chat"):
    """Wrap one adapter call in a client span.

    Yields ``None`` when tracing is disabled.
    """
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"{operation} {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": operation,
            "gen_ai.provider.name": system,
            "gen_ai.request.model": model,
        },
    ) as span:
        yield span


def record_result(span, result) -> None:
    """Set output attributes from a finished exchange on a span."""
    if span is None or result is None:
        return
    span.set_attribute(
        "gen_ai.response.finish_reasons", [result.finish_reason]
    )
    span.set_attribute("llmrelay.output.chars", len(result.content))
    if result.tool_calls:
        span.set_attribute(
            "llmrelay.output.tool_calls", len(result.tool_calls)
        )
    if result.dropped_frames:
        span.set_attribute(
            "llmrelay.stream.dropped_frames", result.dropped_frames
        )


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    Sets ``error.type`` per GenAI semantic conventions.
    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
