"""Versioned plugin interfaces and the events the engines report."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Literal, Union

PLUGIN_API_VERSION = "1.0"
PLUGIN_CONFIG_VERSION = 1
PLUGIN_CONFIG_ENV_VAR = "MIRRORKIT_PLUGIN_CONFIG"

LifecycleStatus = Literal["ok", "error"]


@dataclass(frozen=True, slots=True)
class RecordStartEvent:
    methods: tuple[str, ...]

    hook: ClassVar[str] = "on_record_start"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class RecordedEvent:
    """One event appended to the log; `call_index` is the call it belongs to."""

    position: int
    kind: str
    method: str | None
    call_index: int | None = None

    hook: ClassVar[str] = "on_record_event"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ReplayStartEvent:
    methods: tuple[str, ...]
    event_count: int

    hook: ClassVar[str] = "on_replay_start"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ReplayedEvent:
    """One event consumed from the log; `deferred` marks scheduler-fired callbacks."""

    position: int
    kind: str
    method: str | None
    deferred: bool = False

    hook: ClassVar[str] = "on_replay_event"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ReplayEndEvent:
    status: LifecycleStatus
    replayed_events: int
    remaining_events: int
    error_type: str | None = None
    error_message: str | None = None

    hook: ClassVar[str] = "on_replay_end"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


LifecycleEvent = Union[
    RecordStartEvent,
    RecordedEvent,
    ReplayStartEvent,
    ReplayedEvent,
    ReplayEndEvent,
]


class LifecyclePlugin:
    """No-op base for plugins (API v1.x); override the hooks you need."""

    api_version = PLUGIN_API_VERSION
    name = "lifecycle-plugin"

    def on_record_start(self, event: RecordStartEvent) -> None:
        return None

    def on_record_event(self, event: RecordedEvent) -> None:
        return None

    def on_replay_start(self, event: ReplayStartEvent) -> None:
        return None

    def on_replay_event(self, event: ReplayedEvent) -> None:
        return None

    def on_replay_end(self, event: ReplayEndEvent) -> None:
        return None
