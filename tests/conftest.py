from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable

import pytest


class FakeStorage:
    """Key/value store whose `get` answers through a synchronous callback."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    def get(self, key: str, callback: Callable[[Any], Any]) -> None:
        callback(self.data.get(key))

    def set(self, key: str, value: Any) -> bool:
        self.data[key] = value
        return True

    def keys(self) -> list[str]:
        return sorted(self.data)


class FakeTimers:
    """Defers callbacks until `flush()` is called, like an event loop would."""

    def __init__(self) -> None:
        self.pending: list[tuple[Callable[[Any], Any], Any]] = []

    def later(self, callback: Callable[[Any], Any], value: Any) -> int:
        self.pending.append((callback, value))
        return len(self.pending)

    def flush(self) -> None:
        while self.pending:
            callback, value = self.pending.pop(0)
            callback(value)


class FakeDevice:
    def __init__(self) -> None:
        self.written: list[bytes] = []

    def write(self, payload: bytes) -> int:
        self.written.append(bytes(payload))
        return len(payload)

    def read(self) -> bytes:
        return b"\x00\x10\xff"

    def fail(self) -> None:
        raise OSError("device unplugged")


class FakeEvents:
    def __init__(self) -> None:
        self.listeners: list[Callable[..., Any]] = []

    def addListener(self, listener: Callable[..., Any]) -> None:
        self.listeners.append(listener)

    def removeListener(self, listener: Callable[..., Any]) -> None:
        self.listeners.remove(listener)


def greeter_api() -> dict[str, Callable[..., Any]]:
    def greet(name: str, callback: Callable[[str], Any]) -> None:
        callback(f"hello {name}")

    def farewell(name: str) -> bool:
        return True

    return {"greet": greet, "farewell": farewell}


def run_greeter_program(api: Any, seen: list[Any]) -> None:
    def on_greeting(message: str) -> None:
        seen.append(message)
        seen.append(api.farewell("x"))

    api.greet("x", on_greeting)


@pytest.fixture
def live_api() -> SimpleNamespace:
    return SimpleNamespace(
        storage=FakeStorage(),
        timers=FakeTimers(),
        device=FakeDevice(),
        event=FakeEvents(),
    )


@pytest.fixture
def greeter() -> dict[str, Callable[..., Any]]:
    return greeter_api()


@pytest.fixture
def greeter_program() -> Callable[[Any, list[Any]], None]:
    return run_greeter_program
