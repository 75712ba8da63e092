"""Clock abstraction so pacing, backoff and deadlines can be simulated.

Everything in the pipeline that waits, races a deadline or measures elapsed
time goes through a Clock. Production code uses SystemClock; tests and dry
runs use ManualClock, whose sleeps advance virtual time instantly.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class Clock(Protocol):
    """Source of monotonic time, cancellable sleeps and deadlines."""

    def monotonic(self) -> float:
        """Seconds from an arbitrary, never-decreasing origin."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend for ``seconds``; must honour task cancellation."""
        ...

    async def wait_for(self, awaitable: Awaitable[T], timeout: float) -> T:
        """Await ``awaitable``, cancelling it and raising TimeoutError after ``timeout``."""
        ...


class SystemClock:
    """Real time backed by the event loop."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def wait_for(self, awaitable: Awaitable[T], timeout: float) -> T:
        return await asyncio.wait_for(awaitable, timeout=timeout)


class ManualClock:
    """Virtual clock for tests.

    ``sleep`` advances virtual time immediately and yields to the event loop
    once, so cancellation is still observed at every sleep. ``advance`` lets a
    fake upstream pretend that work took time. Deadlines registered through
    ``wait_for`` expire as soon as virtual time reaches them.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self.sleeps: list[float] = []
        self._deadlines: list[tuple[float, asyncio.Event]] = []

    def monotonic(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("cannot move a clock backwards")
        self._now += seconds
        self._expire_deadlines()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            self.sleeps.append(seconds)
            self._now += seconds
            self._expire_deadlines()
        await asyncio.sleep(0)

    async def wait_for(self, awaitable: Awaitable[T], timeout: float) -> T:
        task = asyncio.ensure_future(awaitable)
        expired = asyncio.Event()
        deadline = (self._now + timeout, expired)
        self._deadlines.append(deadline)
        self._expire_deadlines()
        watcher = asyncio.ensure_future(expired.wait())
        try:
            await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            watcher.cancel()
            if deadline in self._deadlines:
                self._deadlines.remove(deadline)

        if task.done():
            return task.result()
        task.cancel()
        raise TimeoutError(f"virtual deadline of {timeout}s passed")

    def _expire_deadlines(self) -> None:
        for at, expired in self._deadlines:
            if at <= self._now:
                expired.set()

    @property
    def total_slept(self) -> float:
        return sum(self.sleeps)
