"""NDJSON trace of what a Recorder or Checker did."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mirrorpack.plugins.base import (
    LifecycleEvent,
    LifecyclePlugin,
    RecordedEvent,
    RecordStartEvent,
    ReplayedEvent,
    ReplayEndEvent,
    ReplayStartEvent,
)


@dataclass(slots=True)
class LifecycleTracePlugin(LifecyclePlugin):
    """Append one JSON line per lifecycle event to `output_path`.

    Lines carry ``phase`` (record or replay), ``hook`` and the event fields
    that are set: declared methods on start lines, log position, kind and
    method on event lines, the outcome on the replay end line. With
    ``events=False`` only start and end lines are written.
    """

    output_path: str = "mirrorkit-trace.ndjson"
    events: bool = True
    name: str = "lifecycle-trace"

    def on_record_start(self, event: RecordStartEvent) -> None:
        self._write("record", event)

    def on_record_event(self, event: RecordedEvent) -> None:
        if self.events:
            self._write("record", event)

    def on_replay_start(self, event: ReplayStartEvent) -> None:
        self._write("replay", event)

    def on_replay_event(self, event: ReplayedEvent) -> None:
        if self.events:
            self._write("replay", event)

    def on_replay_end(self, event: ReplayEndEvent) -> None:
        self._write("replay", event)

    def _write(self, phase: str, event: LifecycleEvent) -> None:
        line: dict[str, Any] = {"phase": phase, "hook": event.hook}
        line.update((key, value) for key, value in event.to_dict().items() if value is not None)

        path = Path(self.output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(line, ensure_ascii=True, sort_keys=True) + "\n")
