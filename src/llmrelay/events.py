"""Progress events emitted while a call runs.

Adapters never print.  They push these events to an observer, a plain
callable, which the reporting layer subscribes to.  ``log_observer``
is the default and renders events to the standard ``logging`` tree.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class ProgressEvent:
    """Base for all progress events.

    ``source`` names the adapter that emitted the event; the adapter
    fills it in before handing the event to its observer.
    """

    source: str = ""


@dataclass
class CallStarted(ProgressEvent):
    """A transport exchange is about to begin.

    ``kind`` values: ``"complete"``, ``"stream"``, ``"tools"``.
    """

    kind: str = ""
    model: str = ""
    attempt: int = 1


@dataclass
class RetryScheduled(ProgressEvent):
    attempt: int = 0
    max_attempts: int = 0
    delay: float = 0.0
    error: str = ""


@dataclass
class FirstToken(ProgressEvent):
    """First content or reasoning output of a response."""

    latency: float = 0.0
    thinking: bool = False


@dataclass
class Finished(ProgressEvent):
    """Always the last event of a successful exchange."""

    output_length: int = 0
    dropped_frames: int = 0


Observer = Callable[[ProgressEvent], None]


def log_observer(event: ProgressEvent) -> None:
    """Render progress events as log records."""
    prefix = f"[{event.source}] " if event.source else ""
    if isinstance(event, CallStarted):
        logger.info(
            f"{prefix}LLM {event.kind.upper()} [{event.model}] "
            f"(Attempt {event.attempt})"
        )
    elif isinstance(event, RetryScheduled):
        logger.warning(
            f"{prefix}Retry {event.attempt}/{event.max_attempts} in "
            f"{event.delay:g}s after: {event.error}"
        )
    elif isinstance(event, FirstToken):
        what = "Thinking" if event.thinking else "TTFT"
        logger.debug(f"{prefix}{what}: {event.latency * 1000:.0f}ms")
    elif isinstance(event, Finished):
        logger.info(f"{prefix}Complete. Output: {event.output_length} chars")
        if event.dropped_frames:
            logger.debug(
                f"{prefix}Dropped {event.dropped_frames} undecodable frames"
            )
