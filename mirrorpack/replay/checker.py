"""Replay engine: a mock API surface driven by a recorded log."""

from __future__ import annotations

import copy
import logging
from collections import deque
from typing import Any, Callable, Mapping, Sequence

from mirrorpack.artifact.schema import validate_log_document
from mirrorpack.core.method_tree import build_method_tree, normalize_method_paths
from mirrorpack.core.models import ArgumentList, Call, CallbackInvocation, ReturnValue
from mirrorpack.core.types import KIND_FIELD
from mirrorpack.diff.models import ValueChange
from mirrorpack.plugins.base import ReplayedEvent, ReplayEndEvent, ReplayStartEvent
from mirrorpack.plugins.manager import PluginManager
from mirrorpack.plugins.runtime import resolve_plugin_manager
from mirrorpack.replay.exceptions import (
    CallbackMismatchError,
    CallMismatchError,
    IncompleteReplayError,
    MissingCallError,
    MissingReturnError,
    ReplayMismatchError,
    ReturnMismatchError,
    UnexpectedCallError,
)
from mirrorpack.replay.integrity import check_log_integrity
from mirrorpack.replay.scheduler import EventLoopScheduler, Scheduler

logger = logging.getLogger(__name__)


class Checker:
    """Replays a recorded log against the program under test.

    ``checker.api`` mirrors the recorded API. Every call made through it is
    matched against the next recorded call; the callbacks the original API
    fired while the call was running are fired again before it returns, and
    the ones it fired later are fired from the scheduler. Call `done()` once
    the program has finished to assert the whole log was replayed.

    A Checker is single use. The log passed in is copied and never mutated.
    """

    def __init__(
        self,
        log: Sequence[Mapping[str, Any]],
        methods: Sequence[str],
        scheduler: Scheduler | None = None,
        *,
        plugin_manager: PluginManager | None = None,
    ) -> None:
        self.methods = normalize_method_paths(methods)
        events = [copy.deepcopy(dict(event)) if isinstance(event, Mapping) else event for event in log]
        validate_log_document({KIND_FIELD: "checker", "log": events, "methods": list(self.methods)})
        check_log_integrity(events, self.methods)

        self._residual: deque[dict[str, Any]] = deque(events)
        self._total_events = len(events)
        self._calls: list[Call] = []
        self._scheduler: Scheduler = scheduler if scheduler is not None else EventLoopScheduler()
        self._wake_armed = False
        self._wake_handle: Any = None
        self._failure: BaseException | None = None
        self._finished = False
        self._plugins = resolve_plugin_manager(plugin_manager)

        self.api = build_method_tree(self.methods, self._wrap_method)

        self._plugins.emit(
            ReplayStartEvent(methods=self.methods, event_count=self._total_events)
        )
        logger.debug(
            "checker ready: %d event(s) over %d method(s)", self._total_events, len(self.methods)
        )

    @classmethod
    def from_dict(
        cls,
        document: Mapping[str, Any],
        scheduler: Scheduler | None = None,
        *,
        plugin_manager: PluginManager | None = None,
    ) -> "Checker":
        """Build a Checker from a checker document (``{"kind": "checker", ...}``)."""
        validate_log_document(document)
        return cls(
            document["log"],
            document["methods"],
            scheduler,
            plugin_manager=plugin_manager,
        )

    def to_dict(self) -> dict[str, Any]:
        """Checker document holding only the events not replayed yet."""
        return {
            KIND_FIELD: "checker",
            "log": copy.deepcopy(list(self._residual)),
            "methods": list(self.methods),
        }

    @property
    def remaining(self) -> int:
        return len(self._residual)

    def replayed_calls(self) -> list[Call]:
        return list(self._calls)

    def done(self) -> None:
        """Assert the replay finished cleanly.

        Re-raises the first failure of a deferred callback, then fails with
        IncompleteReplayError if recorded events were never replayed.
        """
        if self._failure is not None:
            self._finish(self._failure)
            raise self._failure

        if self._residual:
            leftover = list(self._residual)
            error = IncompleteReplayError(
                f"{len(leftover)} recorded event(s) were never replayed; next expected: "
                f"{describe_event(leftover[0], self._calls)}.",
                expected=leftover,
            )
            self._finish(error)
            raise error

        self._finish(None)

    def _wrap_method(self, path: str, target: Any, parent: Any) -> Callable[..., Any]:
        def replayed(*args: Any, **kwargs: Any) -> Any:
            try:
                return self._replay_call(path, args, kwargs)
            except ReplayMismatchError as error:
                # kept for done() in case the program swallows it
                if self._failure is None:
                    self._failure = error
                raise

        replayed.__name__ = path.rsplit(".", 1)[-1]
        replayed.__qualname__ = path
        return replayed

    def _replay_call(self, name: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        call = Call(name=name, arguments=ArgumentList.from_live(args, kwargs))

        if not self._residual:
            raise UnexpectedCallError(
                f"Unexpected call to {name!r}: the recording has no events left.",
                method=name,
            )
        head = self._residual[0]
        if head[KIND_FIELD] != "call":
            raise UnexpectedCallError(
                f"Unexpected call to {name!r}: the recording expects "
                f"{describe_event(head, self._calls)} next.",
                method=name,
                expected=head,
            )

        changes = call.match(head, self._calls)
        if changes:
            raise _call_mismatch(name, head, changes)

        self._pop(deferred=False)
        self._calls.append(call)
        call_index = len(self._calls) - 1
        logger.debug("replayed call #%d %s", call_index, name)

        while True:
            if not self._residual:
                raise MissingReturnError(
                    f"The recording ends before call #{call_index} ({name!r}) returns.",
                    method=name,
                )
            head = self._residual[0]
            kind = head[KIND_FIELD]
            if kind == "callback_invocation":
                self._invoke_next(deferred=False)
            elif kind == "call":
                raise MissingCallError(
                    f"While {name!r} (call #{call_index}) was running, the recording expects a "
                    f"call to {head['name']!r} from inside a callback, but none was made.",
                    method=head["name"],
                    expected=head,
                )
            else:
                break

        node = self._pop(deferred=False)
        if node["call_index"] != call_index:
            returning = self._calls[node["call_index"]].name
            raise ReturnMismatchError(
                f"Call #{call_index} ({name!r}) is returning, but the recording returns from "
                f"call #{node['call_index']} ({returning!r}) here.",
                method=name,
                expected=node["call_index"],
                actual=call_index,
            )

        value = ReturnValue.from_dict(node["value"], self._calls).value
        self._schedule_wake()
        return value

    def _invoke_next(self, *, deferred: bool) -> None:
        node = self._pop(deferred=deferred)
        invocation = CallbackInvocation.from_dict(node, self._calls)
        logger.debug(
            "firing %s callback of call #%s",
            "deferred" if deferred else "synchronous",
            node["callback"]["origin_index"],
        )
        invocation.invoke()

    def _pop(self, *, deferred: bool) -> dict[str, Any]:
        position = self._total_events - len(self._residual)
        node = self._residual.popleft()
        self._plugins.emit(
            ReplayedEvent(
                position=position,
                kind=node[KIND_FIELD],
                method=_event_method(node, self._calls),
                deferred=deferred,
            )
        )
        return node

    def _head_is(self, kind: str) -> bool:
        return bool(self._residual) and self._residual[0][KIND_FIELD] == kind

    def _schedule_wake(self) -> None:
        if self._wake_armed or self._failure is not None:
            return
        if not self._head_is("callback_invocation"):
            return
        self._wake_armed = True
        try:
            self._wake_handle = self._scheduler.schedule(self._on_wake)
        except Exception:
            # nothing is queued, so a later return may arm again
            self._wake_armed = False
            raise

    def _on_wake(self) -> None:
        self._wake_armed = False
        self._wake_handle = None
        if self._failure is not None or not self._head_is("callback_invocation"):
            return
        try:
            self._invoke_next(deferred=True)
        except Exception as error:
            self._failure = error
            logger.warning("deferred callback failed: %s", error)
            raise
        self._schedule_wake()

    def _finish(self, error: BaseException | None) -> None:
        if self._finished:
            return
        self._finished = True
        self._plugins.emit(
            ReplayEndEvent(
                status="ok" if error is None else "error",
                replayed_events=self._total_events - len(self._residual),
                remaining_events=len(self._residual),
                error_type=error.__class__.__name__ if error is not None else None,
                error_message=str(error) if error is not None else None,
            )
        )


def describe_event(node: Mapping[str, Any], calls: Sequence[Call] = ()) -> str:
    """Human readable one-liner for a wire event."""
    kind = node.get(KIND_FIELD)
    if kind == "call":
        return f"a call to {node.get('name')!r}"
    if kind == "call_return":
        return f"the return of call #{node.get('call_index')}{_call_label(node.get('call_index'), calls)}"
    if kind == "callback_invocation":
        origin = node.get("callback", {}).get("origin_index")
        return f"an invocation of the callback passed to call #{origin}{_call_label(origin, calls)}"
    return f"an event of kind {kind!r}"


def _call_label(index: Any, calls: Sequence[Call]) -> str:
    if isinstance(index, int) and 0 <= index < len(calls):
        return f" ({calls[index].name!r})"
    return ""


def _event_method(node: Mapping[str, Any], calls: Sequence[Call]) -> str | None:
    kind = node[KIND_FIELD]
    if kind == "call":
        return node["name"]
    index = node["call_index"] if kind == "call_return" else node["callback"]["origin_index"]
    if 0 <= index < len(calls):
        return calls[index].name
    return None


def _call_mismatch(
    name: str,
    expected: Mapping[str, Any],
    changes: list[ValueChange],
) -> ReplayMismatchError:
    first = changes[0]
    if first.path == "/name":
        return CallMismatchError(
            f"Expected a call to {first.expected!r} but {name!r} was called.",
            method=name,
            path=first.path,
            expected=first.expected,
            actual=first.actual,
            changes=changes,
        )

    error_type: type[CallMismatchError] = CallMismatchError
    if any(change.kind == "callback" for change in changes):
        error_type = CallbackMismatchError
        first = next(change for change in changes if change.kind == "callback")

    details = "\n".join(f"  {change.describe()}" for change in changes[:8])
    if len(changes) > 8:
        details += f"\n  ... {len(changes) - 8} more"
    return error_type(
        f"Arguments of {name!r} differ from the recording:\n{details}",
        method=name,
        path=first.path,
        expected=first.expected,
        actual=first.actual,
        changes=changes,
    )
