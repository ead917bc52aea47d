from __future__ import annotations

import asyncio

import pytest

from mirrorpack.replay.exceptions import SchedulerError
from mirrorpack.replay.scheduler import EventLoopScheduler, ManualScheduler


def test_manual_scheduler_runs_tasks_in_order() -> None:
    scheduler = ManualScheduler()
    seen: list[int] = []

    scheduler.schedule(lambda: seen.append(1))
    scheduler.schedule(lambda: seen.append(2))

    assert scheduler.pending == 2
    assert scheduler.run_next() is True
    assert seen == [1]
    assert scheduler.run_until_idle() == 1
    assert seen == [1, 2]
    assert scheduler.run_next() is False


def test_cancelled_tasks_are_skipped() -> None:
    scheduler = ManualScheduler()
    seen: list[str] = []

    task = scheduler.schedule(lambda: seen.append("cancelled"))
    scheduler.schedule(lambda: seen.append("kept"))
    task.cancel()

    assert scheduler.pending == 1
    scheduler.run_until_idle()
    assert seen == ["kept"]


def test_tasks_scheduled_while_running_run_later() -> None:
    scheduler = ManualScheduler()
    seen: list[str] = []

    def first() -> None:
        seen.append("first")
        scheduler.schedule(lambda: seen.append("second"))

    scheduler.schedule(first)

    assert scheduler.run_next() is True
    assert seen == ["first"]
    assert scheduler.run_until_idle() == 1
    assert seen == ["first", "second"]


def test_runaway_rescheduling_is_reported() -> None:
    scheduler = ManualScheduler()

    def again() -> None:
        scheduler.schedule(again)

    scheduler.schedule(again)

    with pytest.raises(SchedulerError, match="re-scheduling itself"):
        scheduler.run_until_idle(max_tasks=5)


def test_event_loop_scheduler_needs_a_loop() -> None:
    with pytest.raises(SchedulerError, match="ManualScheduler"):
        EventLoopScheduler().schedule(lambda: None)


def test_event_loop_scheduler_uses_the_given_loop() -> None:
    loop = asyncio.new_event_loop()
    seen: list[str] = []
    try:
        EventLoopScheduler(loop=loop).schedule(lambda: seen.append("ran"))
        assert seen == []
        loop.run_until_complete(asyncio.sleep(0))
    finally:
        loop.close()

    assert seen == ["ran"]


def test_event_loop_scheduler_defaults_to_the_running_loop() -> None:
    seen: list[str] = []

    async def scenario() -> None:
        handle = EventLoopScheduler().schedule(lambda: seen.append("ran"))
        assert isinstance(handle, asyncio.Handle)
        await asyncio.sleep(0)

    asyncio.run(scenario())
    assert seen == ["ran"]
