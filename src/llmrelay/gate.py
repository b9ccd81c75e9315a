"""Async concurrency gate with strict FIFO hand-off.

Local GPU backends run with a limit of 1 so a single model is never
asked to serve two generations at once; hosted APIs are usually safe
around 10.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")


class ConcurrencyGate:
    """Bounds the number of in-flight operations.

    A released slot is handed straight to the oldest waiter, so the
    running count never dips and rises again while callers are queued.
    Use ``async with gate:`` to hold a slot for the duration of a block.

    Args:
        limit: Maximum number of concurrent holders. Must be >= 1.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("ConcurrencyGate limit must be >= 1")
        self._limit = limit
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def running(self) -> int:
        return self._active

    @property
    def pending(self) -> int:
        return sum(1 for fut in self._waiters if not fut.done())

    async def acquire(self) -> None:
        if self._active < self._limit and not self.pending:
            self._active += 1
            return

        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # Slot was handed over before the cancellation landed.
                self.release()
            elif fut in self._waiters:
                self._waiters.remove(fut)
            raise

    def release(self) -> None:
        if self._active <= 0:
            raise RuntimeError("release() called on an idle ConcurrencyGate")
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_result(None)
                return
        self._active -= 1

    async def run_exclusive(
        self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        async with self:
            return await fn(*args, **kwargs)

    async def __aenter__(self) -> ConcurrencyGate:
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return (
            f"ConcurrencyGate(limit={self._limit}, running={self.running}, "
            f"pending={self.pending})"
        )
