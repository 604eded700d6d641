"""Debounce and throttle rate limiting as a pure state machine.

A limiter is an immutable value. Every operation takes the current limiter and
returns a `Step`: the next limiter plus whatever the caller must act on (at
most one emitted value and any timers to schedule). Nothing here sleeps,
spawns, or schedules anything itself; see `pacer.runtime` for a driver.

Stale debounce timers are told apart with a counting fence instead of
cancellation: a settle-check carries the pending-queue length at the time it
was scheduled, and only a check whose stamp still equals the queue length when
it fires may emit.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class State(enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class Debounce(Generic[T]):
    cooldown_ms: int
    # Most recent first.
    pending: tuple[T, ...] = ()


@dataclass(frozen=True, slots=True)
class Throttle:
    interval_ms: int


@dataclass(frozen=True, slots=True)
class SettleCheck:
    """Debounce timer; `token` is the pending length when it was scheduled."""

    token: int


@dataclass(frozen=True, slots=True)
class Reopen:
    """Throttle timer ending a closed window."""


TimerEvent = SettleCheck | Reopen


@dataclass(frozen=True, slots=True)
class ScheduleRequest:
    """Ask the caller's scheduler to deliver `event` back after `delay_ms`."""

    delay_ms: int
    event: TimerEvent


@dataclass(frozen=True, slots=True)
class ToEnqueue(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class ToEmitAndClose(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Drop(Generic[T]):
    value: T


Decision = ToEnqueue | ToEmitAndClose | Drop
Message = SettleCheck | Reopen | ToEnqueue | ToEmitAndClose | Drop


@dataclass(frozen=True, slots=True)
class Emission(Generic[T]):
    """A value leaving the limiter (wrapped so `None` payloads stay visible)."""

    value: T


@dataclass(frozen=True, slots=True)
class RateLimiter(Generic[T]):
    mode: Debounce[T] | Throttle
    state: State = State.OPEN


@dataclass(frozen=True, slots=True)
class Step(Generic[T]):
    limiter: RateLimiter[T]
    emission: Emission[T] | None = None
    requests: tuple[ScheduleRequest, ...] = ()
    dropped: Emission[T] | None = None


def create_debounce(cooldown_ms: int) -> RateLimiter[Any]:
    """Return an open debounce limiter with an empty pending queue.

    `cooldown_ms` is not validated; enforcing a positive duration is up to the
    caller.
    """

    return RateLimiter(mode=Debounce(cooldown_ms))


def create_throttle(interval_ms: int) -> RateLimiter[Any]:
    """Return an open throttle limiter (`interval_ms` is not validated)."""

    return RateLimiter(mode=Throttle(interval_ms))


def is_open(limiter: RateLimiter[Any]) -> bool:
    return limiter.state is State.OPEN


def pending_values(limiter: RateLimiter[T]) -> tuple[T, ...]:
    """Queued debounce values, most recent first (always empty for throttle)."""

    if isinstance(limiter.mode, Debounce):
        return limiter.mode.pending
    return ()


def classify(value: T, limiter: RateLimiter[T]) -> Decision:
    """Decide what `submit` would do with `value`, without doing it.

    Used when the decision has to be taken as an event arrives but can only be
    applied later, by redelivering the result to `apply_decision`.
    """

    match limiter:
        case RateLimiter(mode=Debounce(), state=State.OPEN):
            return ToEnqueue(value)
        case RateLimiter(mode=Throttle(), state=State.OPEN):
            return ToEmitAndClose(value)
        case _:
            return Drop(value)


def apply_decision(decision: Decision, limiter: RateLimiter[T]) -> Step[T]:
    """Carry out a decision produced by `classify`.

    A decision that no longer fits the limiter (an emit-and-close arriving
    after the window already closed, an enqueue on a throttle) drops its value,
    so a throttle never has more than one reopen timer outstanding.
    """

    match decision, limiter:
        case ToEnqueue(value), RateLimiter(
            mode=Debounce(cooldown_ms=cooldown_ms, pending=pending), state=State.OPEN
        ):
            queued = (value, *pending)
            return Step(
                limiter=replace(limiter, mode=Debounce(cooldown_ms, queued)),
                requests=(ScheduleRequest(cooldown_ms, SettleCheck(len(queued))),),
            )
        case ToEmitAndClose(value), RateLimiter(
            mode=Throttle(interval_ms=interval_ms), state=State.OPEN
        ):
            return Step(
                limiter=replace(limiter, state=State.CLOSED),
                emission=Emission(value),
                requests=(ScheduleRequest(interval_ms, Reopen()),),
            )
        case (ToEnqueue(value) | ToEmitAndClose(value) | Drop(value)), _:
            return Step(limiter=limiter, dropped=Emission(value))
        case _:
            return Step(limiter=limiter)


def submit(value: T, limiter: RateLimiter[T]) -> Step[T]:
    """Offer `value` to the limiter.

    - open debounce: queue it and ask for a settle-check after the cooldown
    - open throttle: emit it now, close, and ask for a reopen after the interval
    - closed: drop it (reported in `Step.dropped`)
    """

    return apply_decision(classify(value, limiter), limiter)


def handle_timer_fired(event: TimerEvent, limiter: RateLimiter[T]) -> Step[T]:
    """Apply a timer previously requested through a `ScheduleRequest`.

    Timers that do not match the limiter's mode are ignored.
    """

    match event, limiter.mode:
        case SettleCheck(token=token), Debounce(pending=pending) if token == len(pending) > 0:
            return Step(
                limiter=replace(limiter, mode=replace(limiter.mode, pending=())),
                emission=Emission(pending[0]),
            )
        case Reopen(), Throttle():
            return Step(limiter=replace(limiter, state=State.OPEN))
        case _:
            return Step(limiter=limiter)


def update(message: Message, limiter: RateLimiter[T]) -> Step[T]:
    """Single redelivery entry point for timer events and decisions."""

    match message:
        case SettleCheck() | Reopen():
            return handle_timer_fired(message, limiter)
        case ToEnqueue() | ToEmitAndClose() | Drop():
            return apply_decision(message, limiter)
        case _:
            return Step(limiter=limiter)
