"""Drive a rate limiter with a scheduler and callbacks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pacer import limiter as core
from pacer.limiter import (
    Debounce,
    Decision,
    RateLimiter,
    Reopen,
    SettleCheck,
    State,
    Step,
    Throttle,
    TimerEvent,
)
from pacer.scheduler import Scheduler

T = TypeVar("T")

logger = logging.getLogger("pacer.runtime")


class Pacer(Generic[T]):
    """Own one limiter and carry out what its steps ask for.

    Timer requests go to `scheduler`, and fired timers come back through
    `handle_timer_fired`. Emitted values reach `on_emit` through a zero-delay
    schedule, so they always surface on a later turn than the call that
    produced them. Dropped values are reported to `on_drop` immediately.
    """

    def __init__(
        self,
        limiter: RateLimiter[T],
        scheduler: Scheduler,
        on_emit: Callable[[T], None],
        *,
        on_drop: Callable[[T], None] | None = None,
        name: str = "pacer",
    ) -> None:
        self._limiter = limiter
        self._scheduler = scheduler
        self._on_emit = on_emit
        self._on_drop = on_drop
        self.name = name

    @classmethod
    def debounce(
        cls,
        cooldown_ms: int,
        scheduler: Scheduler,
        on_emit: Callable[[Any], None],
        **kwargs: Any,
    ) -> Pacer[Any]:
        return cls(core.create_debounce(cooldown_ms), scheduler, on_emit, **kwargs)

    @classmethod
    def throttle(
        cls,
        interval_ms: int,
        scheduler: Scheduler,
        on_emit: Callable[[Any], None],
        **kwargs: Any,
    ) -> Pacer[Any]:
        return cls(core.create_throttle(interval_ms), scheduler, on_emit, **kwargs)

    @property
    def limiter(self) -> RateLimiter[T]:
        return self._limiter

    def submit(self, value: T) -> None:
        self._commit(core.submit(value, self._limiter))

    def handle_timer_fired(self, event: TimerEvent) -> None:
        mode = self._limiter.mode
        step = core.handle_timer_fired(event, self._limiter)
        if isinstance(event, SettleCheck) and isinstance(mode, Debounce):
            if step.emission is None:
                logger.debug("%s: stale settle-check %d ignored", self.name, event.token)
        elif isinstance(event, Reopen) and isinstance(mode, Throttle):
            logger.debug("%s: reopened", self.name)
        else:
            logger.debug(
                "%s: ignored %s timer on a %s limiter",
                self.name,
                type(event).__name__,
                type(mode).__name__.lower(),
            )
        self._commit(step)

    def apply_decision(self, decision: Decision) -> None:
        self._commit(core.apply_decision(decision, self._limiter))

    def event_handler(self) -> Callable[[T], None]:
        """Return a callback suitable for binding to a host event source.

        The handler classifies the value against the limiter as it is when the
        event arrives, then redelivers the decision on the next turn.
        """

        def handler(value: T) -> None:
            decision = core.classify(value, self._limiter)
            self._scheduler.schedule_after(0, lambda: self.apply_decision(decision))

        return handler

    def _commit(self, step: Step[T]) -> None:
        self._limiter = step.limiter

        for request in step.requests:
            self._schedule_timer(request.delay_ms, request.event)

        if step.emission is not None:
            value = step.emission.value
            self._scheduler.schedule_after(0, lambda: self._on_emit(value))

        if step.dropped is not None:
            if step.limiter.state is State.CLOSED:
                logger.debug("%s: dropped value while closed", self.name)
            else:
                logger.debug("%s: dropped value from a decision that no longer applies", self.name)
            if self._on_drop is not None:
                self._on_drop(step.dropped.value)

    def _schedule_timer(self, delay_ms: int, event: TimerEvent) -> None:
        self._scheduler.schedule_after(delay_ms, lambda: self.handle_timer_fired(event))
