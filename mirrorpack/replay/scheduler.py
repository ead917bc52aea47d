"""Deferred execution used to replay asynchronous callbacks.

A scheduler only has to run a thunk "later", on a future turn of whatever
loop drives the program under test. Elapsed time is never reproduced.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from mirrorpack.replay.exceptions import SchedulerError

Thunk = Callable[[], Any]


class Scheduler(Protocol):
    def schedule(self, callback: Thunk) -> Any:
        """Run `callback` later; may return a cancellable handle."""


@dataclass(slots=True)
class EventLoopScheduler:
    """Defer onto an asyncio loop with `call_soon`.

    Uses `loop` when given, otherwise the loop running at scheduling time.
    """

    loop: asyncio.AbstractEventLoop | None = None

    def schedule(self, callback: Thunk) -> asyncio.Handle:
        loop = self.loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as error:
                raise SchedulerError(
                    "Asynchronous callbacks need a running asyncio event loop. "
                    "Replay inside a coroutine or pass scheduler=ManualScheduler()."
                ) from error
        return loop.call_soon(callback)


@dataclass(slots=True)
class ScheduledTask:
    """Handle for a task queued on a ManualScheduler."""

    callback: Thunk
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(slots=True)
class ManualScheduler:
    """Scheduler that runs deferred tasks only when told to."""

    _queue: deque[ScheduledTask] = field(default_factory=deque, init=False, repr=False)

    @property
    def pending(self) -> int:
        return sum(1 for task in self._queue if not task.cancelled)

    def schedule(self, callback: Thunk) -> ScheduledTask:
        task = ScheduledTask(callback=callback)
        self._queue.append(task)
        return task

    def run_next(self) -> bool:
        """Run the oldest pending task. Returns False when nothing ran."""
        while self._queue:
            task = self._queue.popleft()
            if task.cancelled:
                continue
            task.callback()
            return True
        return False

    def run_until_idle(self, *, max_tasks: int = 10_000) -> int:
        """Run tasks, including ones they schedule, until the queue drains."""
        ran = 0
        while self.run_next():
            ran += 1
            if ran >= max_tasks and self.pending:
                raise SchedulerError(
                    f"ManualScheduler ran {max_tasks} tasks without going idle; "
                    "a callback is probably re-scheduling itself forever."
                )
        return ran
