"""Stable public API surface for MirrorKit.

This module is the supported import path for library users.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from mirrorpack.artifact import read_log, write_log
from mirrorpack.capture import Recorder
from mirrorpack.cassette import Cassette, CassetteError, use_cassette
from mirrorpack.core.exceptions import (
    CallbackResolutionError,
    DanglingCallError,
    DuplicateReturnError,
    LogFormatError,
    LogIntegrityError,
    MirrorError,
    UnmatchedReturnError,
    ValueCodecError,
)
from mirrorpack.core.method_tree import MethodPathError
from mirrorpack.diff import LogDiffResult, diff_logs
from mirrorpack.plugins.manager import PluginManager
from mirrorpack.replay import (
    CallbackMismatchError,
    CallMismatchError,
    Checker,
    EventLoopScheduler,
    IncompleteReplayError,
    ManualScheduler,
    MissingCallError,
    MissingReturnError,
    ReplayMismatchError,
    ReturnMismatchError,
    Scheduler,
    SchedulerError,
    UnexpectedCallError,
)
from mirrorpack.summary import LogSummary, summarize_log

__version__ = "0.1.0"


def dump(recording: Recorder | Checker | dict[str, Any], path: str | Path) -> dict[str, Any]:
    """Write a recording to a log file.

    Args:
        recording: A Recorder, a Checker (its unreplayed remainder) or a
            checker document.
        path: Output log path.

    Returns:
        The checker document that was written.
    """
    return write_log(recording, path)


def load(
    path: str | Path,
    *,
    scheduler: Scheduler | None = None,
    plugin_manager: PluginManager | None = None,
) -> Checker:
    """Load a log file and return a Checker ready to replay it.

    Args:
        path: Log file written by `dump`.
        scheduler: Scheduler for asynchronous callbacks. Defaults to the
            running asyncio loop.
        plugin_manager: Lifecycle plugins to notify during replay.

    Returns:
        A fresh Checker.
    """
    return Checker.from_dict(read_log(path), scheduler, plugin_manager=plugin_manager)


def diff(
    left: str | Path,
    right: str | Path,
    *,
    first_only: bool = False,
    max_changes_per_event: int = 32,
) -> LogDiffResult:
    """Diff two log files event by event.

    Args:
        left: Baseline log path.
        right: Candidate log path.
        first_only: Stop scanning when the first divergence is found.
        max_changes_per_event: Maximum value-level changes collected per event.

    Returns:
        Structured log diff result.
    """
    return diff_logs(
        read_log(left),
        read_log(right),
        stop_at_first_divergence=first_only,
        max_changes_per_event=max_changes_per_event,
    )


def summarize(path: str | Path) -> LogSummary:
    """Summarize the calls and callbacks recorded in a log file."""
    return summarize_log(read_log(path))


__all__ = [
    "__version__",
    "Recorder",
    "Checker",
    "Scheduler",
    "EventLoopScheduler",
    "ManualScheduler",
    "Cassette",
    "LogDiffResult",
    "LogSummary",
    "use_cassette",
    "dump",
    "load",
    "diff",
    "summarize",
    "MirrorError",
    "LogFormatError",
    "CallbackResolutionError",
    "ValueCodecError",
    "LogIntegrityError",
    "UnmatchedReturnError",
    "DuplicateReturnError",
    "DanglingCallError",
    "MethodPathError",
    "SchedulerError",
    "CassetteError",
    "ReplayMismatchError",
    "UnexpectedCallError",
    "CallMismatchError",
    "CallbackMismatchError",
    "MissingCallError",
    "MissingReturnError",
    "ReturnMismatchError",
    "IncompleteReplayError",
]
