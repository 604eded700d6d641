"""Schedulers that deliver a limiter's timers back to it.

A scheduler runs a callback no earlier than `delay_ms` after it was asked to,
at most once, and never before `schedule_after` has returned. There is no
cancellation; stale timers are resolved by the limiter itself.
"""

from __future__ import annotations

import asyncio
import heapq
from abc import ABC, abstractmethod
from collections.abc import Callable

Callback = Callable[[], None]


class Scheduler(ABC):
    @abstractmethod
    def schedule_after(self, delay_ms: int, callback: Callback) -> None:
        """Run `callback` once, after at least `delay_ms` milliseconds."""


class AsyncioScheduler(Scheduler):
    """Schedule callbacks on an asyncio event loop.

    A zero delay still runs on the next loop iteration (`call_soon`), never
    inside the call that scheduled it.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule_after(self, delay_ms: int, callback: Callback) -> None:
        if delay_ms <= 0:
            self.loop.call_soon(callback)
        else:
            self.loop.call_later(delay_ms / 1000.0, callback)


class ManualScheduler(Scheduler):
    """Deterministic scheduler driven by a virtual millisecond clock.

    Callbacks due at the same instant run in the order they were scheduled.
    Nothing runs until the clock is advanced.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self._seq = 0
        self._queue: list[tuple[int, int, Callback]] = []

    @property
    def now_ms(self) -> int:
        return self._now

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def schedule_after(self, delay_ms: int, callback: Callback) -> None:
        due = self._now + max(0, delay_ms)
        heapq.heappush(self._queue, (due, self._seq, callback))
        self._seq += 1

    def advance_to(self, t_ms: int) -> int:
        """Move the clock to `t_ms`, running everything that falls due.

        Callbacks scheduled by other callbacks run too if they are due by
        `t_ms`. Returns the number of callbacks run.
        """

        if t_ms < self._now:
            raise ValueError(f"cannot move clock backwards ({t_ms} < {self._now})")

        ran = 0
        while self._queue and self._queue[0][0] <= t_ms:
            due, _, callback = heapq.heappop(self._queue)
            self._now = due
            callback()
            ran += 1
        self._now = t_ms
        return ran

    def advance(self, delta_ms: int) -> int:
        if delta_ms < 0:
            raise ValueError(f"cannot advance by a negative amount: {delta_ms}")
        return self.advance_to(self._now + delta_ms)

    def run_until_idle(self) -> int:
        """Run every queued callback, moving the clock as far as needed."""

        ran = 0
        while self._queue:
            ran += self.advance_to(self._queue[0][0])
        return ran
