"""Unit tests for RetryPolicy."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from llmrelay.errors import AuthFailure, RateLimited, TransportError
from llmrelay.events import RetryScheduled
from llmrelay.retry import RetryPolicy


class Flaky:
    """Attempt function failing with the queued errors, then succeeding."""

    def __init__(self, *errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.attempts: list[int] = []

    async def __call__(self, attempt: int):
        self.attempts.append(attempt)
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestConstruction:
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_backoff_is_exponential(self):
        policy = RetryPolicy(backoff_unit=0.5)
        assert [policy.backoff(n) for n in (2, 3, 4)] == [2.0, 4.0, 8.0]


class TestRun:
    @pytest.mark.asyncio
    async def test_first_attempt_success_does_not_sleep(self):
        sleep = AsyncMock()
        fn = Flaky()
        assert await RetryPolicy(sleep=sleep).run(fn) == "ok"
        assert fn.attempts == [1]
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self):
        sleep = AsyncMock()
        fn = Flaky(TransportError("reset"), RateLimited(429, "slow down"))
        result = await RetryPolicy(max_attempts=3, sleep=sleep).run(fn)

        assert result == "ok"
        assert fn.attempts == [1, 2, 3]
        assert [c.args[0] for c in sleep.await_args_list] == [4.0, 8.0]

    @pytest.mark.asyncio
    async def test_exhausted_budget_raises_last_error(self):
        fn = Flaky(TransportError("one"), TransportError("two"), TransportError("three"))
        with pytest.raises(TransportError, match="three"):
            await RetryPolicy(max_attempts=3, sleep=AsyncMock()).run(fn)
        assert fn.attempts == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_no_sleep_after_final_failure(self):
        sleep = AsyncMock()
        first, second = TransportError("first"), TransportError("second")
        with pytest.raises(TransportError) as exc_info:
            await RetryPolicy(max_attempts=2, sleep=sleep).run(Flaky(first, second))

        assert exc_info.value is second
        sleep.assert_awaited_once_with(4.0)

    @pytest.mark.asyncio
    async def test_fatal_error_not_retried(self):
        sleep = AsyncMock()
        fn = Flaky(AuthFailure(401, "bad key"))
        with pytest.raises(AuthFailure):
            await RetryPolicy(max_attempts=3, sleep=sleep).run(fn)
        assert fn.attempts == [1]
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_custom_fatal_predicate(self):
        fn = Flaky(ValueError("invalid_api_key"))
        policy = RetryPolicy(
            is_fatal=lambda e: "invalid_api_key" in str(e), sleep=AsyncMock()
        )
        with pytest.raises(ValueError):
            await policy.run(fn)
        assert fn.attempts == [1]

    @pytest.mark.asyncio
    async def test_single_attempt_budget(self):
        fn = Flaky(TransportError("once"))
        with pytest.raises(TransportError):
            await RetryPolicy(max_attempts=1, sleep=AsyncMock()).run(fn)
        assert fn.attempts == [1]

    @pytest.mark.asyncio
    async def test_cancellation_propagates_immediately(self):
        fn = Flaky(asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await RetryPolicy(max_attempts=3, sleep=AsyncMock()).run(fn)
        assert fn.attempts == [1]


class TestReporting:
    @pytest.mark.asyncio
    async def test_emits_retry_events(self):
        events = []
        fn = Flaky(TransportError("reset"))
        policy = RetryPolicy(max_attempts=2, sleep=AsyncMock(), emit=events.append)
        await policy.run(fn)

        assert events == [
            RetryScheduled(attempt=2, max_attempts=2, delay=4.0, error="reset")
        ]

    @pytest.mark.asyncio
    async def test_logs_each_failure(self, caplog):
        fn = Flaky(TransportError("reset"))
        with caplog.at_level(logging.WARNING, logger="llmrelay.retry"):
            await RetryPolicy(sleep=AsyncMock()).run(fn)
        assert any("Attempt 1/3" in r.message for r in caplog.records)
