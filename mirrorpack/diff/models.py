"""Data models for log diffs and replay mismatch details."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

ChangeKind = Literal["value", "type", "callback", "missing"]
DiffStatus = Literal["identical", "changed", "missing_baseline", "missing_candidate"]


@dataclass(slots=True)
class ValueChange:
    """A single value delta at a JSON pointer path."""

    path: str
    expected: Any
    actual: Any
    kind: ChangeKind = "value"

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "expected": self.expected,
            "actual": self.actual,
            "kind": self.kind,
        }

    def describe(self) -> str:
        return f"{self.path or '/'}: expected {self.expected!r}, got {self.actual!r}"


@dataclass(slots=True)
class EventDiff:
    """Diff details for a single event position."""

    index: int
    status: DiffStatus
    baseline_kind: str | None
    candidate_kind: str | None
    changes: list[ValueChange] = field(default_factory=list)
    truncated_changes: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "status": self.status,
            "baseline_kind": self.baseline_kind,
            "candidate_kind": self.candidate_kind,
            "changes": [change.to_dict() for change in self.changes],
            "truncated_changes": self.truncated_changes,
        }


@dataclass(slots=True)
class LogDiffResult:
    """Structured diff for two interaction logs."""

    total_baseline_events: int
    total_candidate_events: int
    event_diffs: list[EventDiff]
    method_changes: list[ValueChange] = field(default_factory=list)

    @property
    def identical(self) -> bool:
        return not self.method_changes and all(
            event.status == "identical" for event in self.event_diffs
        )

    @property
    def first_divergence(self) -> EventDiff | None:
        for event in self.event_diffs:
            if event.status != "identical":
                return event
        return None

    def summary(self) -> dict[str, int]:
        counts = {
            "identical": 0,
            "changed": 0,
            "missing_baseline": 0,
            "missing_candidate": 0,
        }
        for event in self.event_diffs:
            counts[event.status] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_baseline_events": self.total_baseline_events,
            "total_candidate_events": self.total_candidate_events,
            "identical": self.identical,
            "summary": self.summary(),
            "method_changes": [change.to_dict() for change in self.method_changes],
            "first_divergence": (
                self.first_divergence.to_dict() if self.first_divergence is not None else None
            ),
            "event_diffs": [event.to_dict() for event in self.event_diffs],
        }
