from __future__ import annotations

import asyncio

import pytest

from pacer.scheduler import AsyncioScheduler, ManualScheduler


def test_manual_scheduler_runs_nothing_until_advanced() -> None:
    sched = ManualScheduler()
    fired: list[str] = []
    sched.schedule_after(0, lambda: fired.append("a"))

    assert fired == []
    assert sched.pending_count == 1


def test_manual_scheduler_respects_delay() -> None:
    sched = ManualScheduler()
    fired: list[tuple[int, str]] = []
    sched.schedule_after(100, lambda: fired.append((sched.now_ms, "late")))
    sched.schedule_after(10, lambda: fired.append((sched.now_ms, "early")))

    assert sched.advance(50) == 1
    assert fired == [(10, "early")]
    assert sched.now_ms == 50

    sched.advance(50)
    assert fired == [(10, "early"), (100, "late")]


def test_manual_scheduler_same_due_runs_in_scheduling_order() -> None:
    sched = ManualScheduler()
    fired: list[int] = []
    for i in range(5):
        sched.schedule_after(20, lambda i=i: fired.append(i))

    sched.advance(20)
    assert fired == [0, 1, 2, 3, 4]


def test_manual_scheduler_runs_callbacks_scheduled_by_callbacks() -> None:
    sched = ManualScheduler()
    fired: list[tuple[int, str]] = []

    def first() -> None:
        fired.append((sched.now_ms, "first"))
        sched.schedule_after(0, lambda: fired.append((sched.now_ms, "soon")))
        sched.schedule_after(30, lambda: fired.append((sched.now_ms, "later")))

    sched.schedule_after(10, first)
    sched.advance(20)

    assert fired == [(10, "first"), (10, "soon")]
    sched.run_until_idle()
    assert fired[-1] == (40, "later")
    assert sched.pending_count == 0


def test_manual_scheduler_rejects_going_backwards() -> None:
    sched = ManualScheduler(start_ms=100)
    with pytest.raises(ValueError, match="backwards"):
        sched.advance_to(50)
    with pytest.raises(ValueError, match="negative"):
        sched.advance(-1)


def test_manual_scheduler_negative_delay_is_immediate() -> None:
    sched = ManualScheduler(start_ms=5)
    fired: list[int] = []
    sched.schedule_after(-10, lambda: fired.append(sched.now_ms))
    sched.advance(0)
    assert fired == [5]


def test_asyncio_scheduler_zero_delay_runs_on_next_turn() -> None:
    fired: list[str] = []

    async def run() -> None:
        sched = AsyncioScheduler()
        sched.schedule_after(0, lambda: fired.append("cb"))
        fired.append("after-schedule")
        await asyncio.sleep(0)

    asyncio.run(run())
    assert fired == ["after-schedule", "cb"]


def test_asyncio_scheduler_delayed_callback() -> None:
    fired: list[float] = []

    async def run() -> None:
        loop = asyncio.get_running_loop()
        sched = AsyncioScheduler(loop)
        start = loop.time()
        sched.schedule_after(20, lambda: fired.append(loop.time() - start))
        await asyncio.sleep(0.1)

    asyncio.run(run())
    assert len(fired) == 1
    assert fired[0] >= 0.015
