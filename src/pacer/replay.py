"""Run a timestamped event script through a limiter on a virtual clock.

Script format, one event per line::

    # t_ms value
    0 x1
    50 x2
    150 x3

Blank lines and `#` comments are ignored. Times must not decrease. Everything
after the first run of whitespace is the value, kept verbatim.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pacer.errors import PacerScriptError
from pacer.limiter import RateLimiter
from pacer.runtime import Pacer
from pacer.scheduler import ManualScheduler


@dataclass(frozen=True, slots=True)
class ScriptEvent:
    t_ms: int
    value: str


@dataclass(frozen=True, slots=True)
class Timed:
    t_ms: int
    value: Any


@dataclass(frozen=True, slots=True)
class ReplayResult:
    emissions: list[Timed]
    drops: list[Timed]
    limiter: RateLimiter[Any]


def parse_script(text: str) -> list[ScriptEvent]:
    events: list[ScriptEvent] = []
    last = 0
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        parts = line.split(None, 1)
        if len(parts) != 2:
            raise PacerScriptError("expected `<t_ms> <value>`", line=lineno)

        t_raw, value = parts
        try:
            t_ms = int(t_raw)
        except ValueError:
            raise PacerScriptError(f"invalid time {t_raw!r}", line=lineno) from None

        if t_ms < 0:
            raise PacerScriptError(f"negative time {t_ms}", line=lineno)
        if t_ms < last:
            raise PacerScriptError(f"time goes backwards ({t_ms} < {last})", line=lineno)
        last = t_ms
        events.append(ScriptEvent(t_ms=t_ms, value=value))
    return events


def run_script(
    events: Iterable[ScriptEvent],
    limiter: RateLimiter[Any],
    *,
    via_events: bool = False,
) -> ReplayResult:
    """Replay `events` and drain every outstanding timer.

    With `via_events`, values go through the classify-then-redeliver path a UI
    binding would use instead of `submit`. Each event is fully applied before
    the next one arrives, even when both share a timestamp.
    """

    scheduler = ManualScheduler()
    emissions: list[Timed] = []
    drops: list[Timed] = []

    pacer: Pacer[Any] = Pacer(
        limiter,
        scheduler,
        on_emit=lambda v: emissions.append(Timed(scheduler.now_ms, v)),
        on_drop=lambda v: drops.append(Timed(scheduler.now_ms, v)),
        name="replay",
    )
    feed = pacer.event_handler() if via_events else pacer.submit

    for event in events:
        scheduler.advance_to(event.t_ms)
        feed(event.value)
        scheduler.advance_to(event.t_ms)

    scheduler.run_until_idle()
    return ReplayResult(emissions=emissions, drops=drops, limiter=pacer.limiter)


def format_timed(kind: str, item: Timed) -> str:
    return f"t={item.t_ms} {kind} {item.value}"
