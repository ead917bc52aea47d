"""Summary statistics for checker documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from mirrorpack.artifact.schema import validate_log_document
from mirrorpack.core.types import EVENT_KINDS, KIND_FIELD


@dataclass(slots=True)
class LogSummary:
    """Shape of a recorded interaction at a glance."""

    event_count: int
    events_by_kind: dict[str, int]
    calls_by_method: dict[str, int]
    sync_invocations: int
    async_invocations: int
    max_call_depth: int
    open_calls: list[int] = field(default_factory=list)

    @property
    def unused_methods(self) -> list[str]:
        return [name for name, count in self.calls_by_method.items() if count == 0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_count": self.event_count,
            "events_by_kind": dict(self.events_by_kind),
            "calls_by_method": dict(self.calls_by_method),
            "unused_methods": self.unused_methods,
            "sync_invocations": self.sync_invocations,
            "async_invocations": self.async_invocations,
            "max_call_depth": self.max_call_depth,
            "open_calls": list(self.open_calls),
        }


def summarize_log(document: Mapping[str, Any]) -> LogSummary:
    """Count events, calls per method and callback timing in a checker document.

    A callback invocation is synchronous when some call is still running at
    that point of the log, asynchronous otherwise. Calls that never return are
    listed in ``open_calls`` instead of failing, so broken logs can still be
    inspected.
    """
    validate_log_document(document)

    events_by_kind = {kind: 0 for kind in EVENT_KINDS}
    calls_by_method = {name: 0 for name in document["methods"]}
    sync_invocations = 0
    async_invocations = 0
    running: list[int] = []
    max_call_depth = 0
    call_count = 0

    for event in document["log"]:
        kind = event[KIND_FIELD]
        events_by_kind[kind] += 1
        if kind == "call":
            calls_by_method[event["name"]] = calls_by_method.get(event["name"], 0) + 1
            running.append(call_count)
            call_count += 1
            max_call_depth = max(max_call_depth, len(running))
        elif kind == "call_return":
            if event["call_index"] in running:
                running.remove(event["call_index"])
        elif running:
            sync_invocations += 1
        else:
            async_invocations += 1

    return LogSummary(
        event_count=len(document["log"]),
        events_by_kind=events_by_kind,
        calls_by_method=calls_by_method,
        sync_invocations=sync_invocations,
        async_invocations=async_invocations,
        max_call_depth=max_call_depth,
        open_calls=running,
    )
