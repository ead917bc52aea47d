"""Replay subsystem: the Checker, its schedulers and log integrity checks."""

from mirrorpack.replay.checker import Checker, describe_event
from mirrorpack.replay.exceptions import (
    CallbackMismatchError,
    CallMismatchError,
    IncompleteReplayError,
    MissingCallError,
    MissingReturnError,
    ReplayError,
    ReplayMismatchError,
    ReturnMismatchError,
    SchedulerError,
    UnexpectedCallError,
)
from mirrorpack.replay.integrity import check_log_integrity
from mirrorpack.replay.scheduler import (
    EventLoopScheduler,
    ManualScheduler,
    ScheduledTask,
    Scheduler,
)

__all__ = [
    "Checker",
    "describe_event",
    "check_log_integrity",
    "Scheduler",
    "EventLoopScheduler",
    "ManualScheduler",
    "ScheduledTask",
    "ReplayError",
    "SchedulerError",
    "ReplayMismatchError",
    "UnexpectedCallError",
    "CallMismatchError",
    "CallbackMismatchError",
    "MissingCallError",
    "MissingReturnError",
    "ReturnMismatchError",
    "IncompleteReplayError",
]
