"""Replay subsystem exceptions."""

from __future__ import annotations

from typing import Any

from mirrorpack.core.exceptions import MirrorError
from mirrorpack.diff.models import ValueChange


class ReplayError(MirrorError):
    """Base class for replay errors that are not assertion failures."""


class SchedulerError(ReplayError):
    """Deferred work was requested but no event loop can run it."""


class ReplayMismatchError(MirrorError, AssertionError):
    """The program under test diverged from the recorded interaction."""

    def __init__(
        self,
        message: str,
        *,
        method: str | None = None,
        path: str | None = None,
        expected: Any = None,
        actual: Any = None,
        changes: list[ValueChange] | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.path = path
        self.expected = expected
        self.actual = actual
        self.changes = list(changes or [])

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "method": self.method,
            "path": self.path,
            "expected": self.expected,
            "actual": self.actual,
            "changes": [change.to_dict() for change in self.changes],
        }


class UnexpectedCallError(ReplayMismatchError):
    """A call was made that the recording does not contain at this point."""


class CallMismatchError(ReplayMismatchError):
    """A call's name or arguments differ from the recording."""


class CallbackMismatchError(CallMismatchError):
    """A callback argument is not the function the recording expects."""


class MissingCallError(ReplayMismatchError):
    """The recording expects a call from inside a callback that never came."""


class MissingReturnError(ReplayMismatchError):
    """The residual log ran out before the current call returned."""


class ReturnMismatchError(ReplayMismatchError):
    """A call_return belongs to a different call than the one in progress."""


class IncompleteReplayError(ReplayMismatchError):
    """Recorded events were left unconsumed when the program finished."""
