import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from llmrelay.errors import is_fatal_error
from llmrelay.events import Observer, RetryScheduled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Bounded retries with exponential backoff.

    The delay before attempt ``n`` (``n > 1``) is ``2**n * backoff_unit``
    seconds.  Failures matching *is_fatal* propagate at once; anything
    else is retried until the budget runs out, then the last failure is
    raised.  Cancellation is never intercepted.

    Not used for live streaming: a retried stream would replay deltas
    the caller has already received.

    Args:
        max_attempts: Total attempts including the first. Must be >= 1.
        backoff_unit: Seconds per backoff unit.
        is_fatal: Predicate deciding which failures are never retried.
        sleep: Coroutine used to wait between attempts.
        emit: Observer notified before each retry.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_unit: float = 1.0,
        is_fatal: Callable[[BaseException], bool] = is_fatal_error,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        emit: Observer | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.backoff_unit = backoff_unit
        self.is_fatal = is_fatal
        self.sleep = sleep
        self.emit = emit

    def backoff(self, attempt: int) -> float:
        return (2 ** attempt) * self.backoff_unit

    async def run(self, attempt_fn: Callable[[int], Awaitable[T]]) -> T:
        attempt = 1
        while True:
            try:
                return await attempt_fn(attempt)
            except Exception as e:
                if self.is_fatal(e):
                    logger.error(f"Fatal error on attempt {attempt}, not retrying: {e}")
                    raise
                logger.warning(f"Error (Attempt {attempt}/{self.max_attempts}): {e}")
                if attempt >= self.max_attempts:
                    raise
                error = str(e)

            attempt += 1
            delay = self.backoff(attempt)
            if self.emit is not None:
                self.emit(RetryScheduled(
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay=delay,
                    error=error,
                ))
            await self.sleep(delay)
