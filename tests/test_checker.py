from __future__ import annotations

import asyncio
import copy
import json
from types import SimpleNamespace
from typing import Any, Callable

import pytest

from mirrorpack.capture import Recorder
from mirrorpack.core.exceptions import (
    CallbackResolutionError,
    DanglingCallError,
    DuplicateReturnError,
    LogFormatError,
    UnmatchedReturnError,
)
from mirrorpack.replay import (
    CallbackMismatchError,
    CallMismatchError,
    Checker,
    IncompleteReplayError,
    ManualScheduler,
    MissingCallError,
    ReplayMismatchError,
    ReturnMismatchError,
    SchedulerError,
    UnexpectedCallError,
)


def _call(name: str, *args: Any) -> dict[str, Any]:
    return {"kind": "call", "name": name, "arguments": {"kind": "argument_list", "args": list(args)}}


def _return(index: int, value: Any = None) -> dict[str, Any]:
    return {"kind": "call_return", "call_index": index, "value": {"kind": "return_value", "value": value}}


def _invoke(origin: int, *args: Any) -> dict[str, Any]:
    return {
        "kind": "callback_invocation",
        "callback": {"kind": "callback", "origin_index": origin},
        "arguments": {"kind": "argument_list", "args": list(args)},
    }


def _callback(origin: int) -> dict[str, Any]:
    return {"kind": "callback", "origin_index": origin}


def _record_storage(live_api: SimpleNamespace) -> dict[str, Any]:
    recorder = Recorder(live_api, ["storage.set", "storage.keys"])
    recorder.api.storage.set("a", 1)
    recorder.api.storage.set("b", 2)
    recorder.api.storage.keys()
    return recorder.to_dict()


def _storage_program(api: Any) -> list[str]:
    api.storage.set("a", 1)
    api.storage.set("b", 2)
    return api.storage.keys()


def test_sample_exchange_replays_to_an_empty_log(
    greeter: dict[str, Callable[..., Any]],
    greeter_program: Callable[[Any, list[Any]], None],
) -> None:
    recorder = Recorder(greeter, ["greet", "farewell"])
    greeter_program(recorder.api, [])

    checker = recorder.checker()
    seen: list[Any] = []
    greeter_program(checker.api, seen)

    assert seen == ["hello x", True]
    assert checker.remaining == 0
    assert checker.to_dict() == {"kind": "checker", "log": [], "methods": ["greet", "farewell"]}
    checker.done()


def test_round_trip_through_json(live_api: SimpleNamespace) -> None:
    document = json.loads(json.dumps(_record_storage(live_api)))
    checker = Checker.from_dict(document)

    assert _storage_program(checker.api) == ["a", "b"]
    checker.done()


def test_replay_is_deterministic_across_deserializations(live_api: SimpleNamespace) -> None:
    document = _record_storage(live_api)
    messages = []
    for _ in range(2):
        checker = Checker.from_dict(document)
        checker.api.storage.set("a", 1)
        with pytest.raises(CallMismatchError) as excinfo:
            checker.api.storage.set("b", 3)
        messages.append(str(excinfo.value))

    assert messages[0] == messages[1]


def test_swapped_calls_fail_with_an_argument_mismatch(live_api: SimpleNamespace) -> None:
    checker = Checker.from_dict(_record_storage(live_api))

    with pytest.raises(CallMismatchError) as excinfo:
        checker.api.storage.set("b", 2)

    error = excinfo.value
    assert error.method == "storage.set"
    assert error.path == "/arguments/args/0"
    assert (error.expected, error.actual) == ("a", "b")
    assert isinstance(error, AssertionError)


def test_wrong_method_fails_with_a_name_mismatch(live_api: SimpleNamespace) -> None:
    checker = Checker.from_dict(_record_storage(live_api))

    with pytest.raises(CallMismatchError, match="Expected a call to 'storage.set' but 'storage.keys'"):
        checker.api.storage.keys()


def test_different_callback_at_the_same_call_site_fails(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["event.addListener", "event.removeListener"])

    def listener() -> None:
        return None

    recorder.api.event.addListener(listener)
    recorder.api.event.removeListener(listener)
    document = recorder.to_dict()

    def replacement() -> None:
        return None

    checker = Checker.from_dict(document)
    checker.api.event.addListener(listener)
    with pytest.raises(CallbackMismatchError) as excinfo:
        checker.api.event.removeListener(replacement)
    assert excinfo.value.path == "/arguments/args/0"
    assert excinfo.value.changes[0].kind == "callback"

    reused = Checker.from_dict(document)
    reused.api.event.addListener(listener)
    reused.api.event.removeListener(listener)
    reused.done()


def test_known_callback_where_a_new_one_was_recorded_fails(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["event.addListener"])
    recorder.api.event.addListener(lambda: None)
    recorder.api.event.addListener(lambda: None)

    def listener() -> None:
        return None

    checker = Checker.from_dict(recorder.to_dict())
    checker.api.event.addListener(listener)
    with pytest.raises(CallbackMismatchError, match="a new callback"):
        checker.api.event.addListener(listener)


def test_stopping_early_fails_done(live_api: SimpleNamespace) -> None:
    checker = Checker.from_dict(_record_storage(live_api))
    checker.api.storage.set("a", 1)

    with pytest.raises(IncompleteReplayError, match="4 recorded event"):
        checker.done()


def test_extra_call_is_unexpected(live_api: SimpleNamespace) -> None:
    checker = Checker.from_dict(_record_storage(live_api))
    _storage_program(checker.api)

    with pytest.raises(UnexpectedCallError, match="no events left"):
        checker.api.storage.keys()


def test_binary_payload_contents_are_compared(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["device.write"])
    recorder.api.device.write(bytes([1, 2, 3]))
    document = recorder.to_dict()

    same = Checker.from_dict(document)
    assert same.api.device.write(bytes([1, 2, 3])) == 3
    same.done()

    different = Checker.from_dict(document)
    with pytest.raises(CallMismatchError) as excinfo:
        different.api.device.write(bytes([1, 3, 5]))
    assert (excinfo.value.expected, excinfo.value.actual) == ([1, 2, 3], [1, 3, 5])


def test_binary_return_values_are_decoded(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["device.read"])
    recorder.api.device.read()

    checker = recorder.checker()
    assert checker.api.device.read() == b"\x00\x10\xff"


def test_keyword_arguments_replay(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["storage.set"])
    recorder.api.storage.set(key="a", value=1)

    checker = recorder.checker()
    assert checker.api.storage.set(key="a", value=1) is True
    checker.done()

    positional = recorder.checker()
    with pytest.raises(CallMismatchError, match="args/length"):
        positional.api.storage.set("a", 1)


def test_callback_that_skips_a_recorded_call_fails(
    greeter: dict[str, Callable[..., Any]],
    greeter_program: Callable[[Any, list[Any]], None],
) -> None:
    recorder = Recorder(greeter, ["greet", "farewell"])
    greeter_program(recorder.api, [])
    checker = recorder.checker()

    with pytest.raises(MissingCallError, match="'farewell' from inside a callback"):
        checker.api.greet("x", lambda message: None)


def test_call_while_a_callback_is_due_is_unexpected(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["timers.later"])
    recorder.api.timers.later(lambda value: None, 1)
    live_api.timers.flush()

    scheduler = ManualScheduler()
    checker = recorder.checker(scheduler)
    checker.api.timers.later(lambda value: None, 1)

    with pytest.raises(UnexpectedCallError, match="invocation of the callback passed to call #0"):
        checker.api.timers.later(lambda value: None, 2)


def test_hand_edited_returns_out_of_order_fail() -> None:
    log = [
        _call("outer", _callback(0)),
        _invoke(0),
        _call("inner"),
        _return(0),
        _return(1),
    ]
    checker = Checker(log, ["outer", "inner"])

    def on_event() -> None:
        checker.api.inner()

    with pytest.raises(ReturnMismatchError, match="returns from call #0"):
        checker.api.outer(on_event)


def test_hand_edited_values_replay() -> None:
    log = [_call("sensor.read", "temp"), _return(0, {"celsius": 21.5})]

    checker = Checker(log, ["sensor.read"])

    assert checker.api.sensor.read("temp") == {"celsius": 21.5}
    checker.done()


def test_source_document_is_never_mutated(live_api: SimpleNamespace) -> None:
    document = _record_storage(live_api)
    snapshot = copy.deepcopy(document)

    checker = Checker.from_dict(document)
    checker.api.storage.set("a", 1)

    assert document == snapshot
    assert checker.remaining == 4
    assert checker.to_dict()["log"] == snapshot["log"][2:]
    assert [call.name for call in checker.replayed_calls()] == ["storage.set"]


@pytest.mark.parametrize(
    ("log", "error_type", "message"),
    [
        ([_call("ping"), _return(3)], UnmatchedReturnError, "call #3"),
        ([_call("ping"), _return(0), _return(0)], DuplicateReturnError, "second time"),
        ([_call("ping"), _return(0), _call("ping")], DanglingCallError, "never returned"),
        ([_call("ping"), _return(0), _invoke(4)], CallbackResolutionError, "call #4"),
        ([_call("ping", _callback(1)), _return(0)], CallbackResolutionError, "call #1"),
        ([_call("ping"), _return(0), _invoke(0)], CallbackResolutionError, "passed 0 callback"),
        ([_call("pong"), _return(0)], LogFormatError, "not a declared method"),
        ([{"kind": "bogus"}], LogFormatError, "Invalid log"),
    ],
)
def test_inconsistent_logs_are_rejected_at_construction(
    log: list[dict[str, Any]],
    error_type: type[Exception],
    message: str,
) -> None:
    with pytest.raises(error_type, match=message):
        Checker(log, ["ping"])


def test_from_dict_requires_a_checker_document() -> None:
    with pytest.raises(LogFormatError, match="checker"):
        Checker.from_dict({"kind": "recorder", "log": [], "methods": []})


def test_async_callbacks_fire_from_the_scheduler(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["timers.later"])

    def tick(value: int) -> None:
        return None

    recorder.api.timers.later(tick, 1)
    recorder.api.timers.later(tick, 2)
    live_api.timers.flush()

    scheduler = ManualScheduler()
    checker = recorder.checker(scheduler)
    seen: list[int] = []

    def on_tick(value: int) -> None:
        seen.append(value)

    assert checker.api.timers.later(on_tick, 1) == 1
    assert checker.api.timers.later(on_tick, 2) == 2
    assert seen == []
    assert scheduler.pending == 1

    assert scheduler.run_until_idle() == 2
    assert seen == [1, 2]
    checker.done()


def test_wake_is_armed_at_most_once(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["timers.later"])

    def inner(value: int) -> None:
        return None

    def outer(value: int) -> None:
        recorder.api.timers.later(inner, value + 1)

    recorder.api.timers.later(outer, 1)
    live_api.timers.flush()

    scheduler = ManualScheduler()
    checker = recorder.checker(scheduler)
    seen: list[int] = []

    def replay_inner(value: int) -> None:
        seen.append(value)

    def replay_outer(value: int) -> None:
        seen.append(value)
        checker.api.timers.later(replay_inner, value + 1)

    checker.api.timers.later(replay_outer, 1)
    assert scheduler.pending == 1

    assert scheduler.run_next() is True
    assert seen == [1]
    assert scheduler.pending == 1

    assert scheduler.run_next() is True
    assert seen == [1, 2]
    assert scheduler.pending == 0
    checker.done()


def test_deferred_failures_are_raised_again_by_done(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["timers.later"])
    recorder.api.timers.later(lambda value: None, 1)
    recorder.api.timers.later(lambda value: None, 2)
    live_api.timers.flush()

    scheduler = ManualScheduler()
    checker = recorder.checker(scheduler)

    def exploding(value: int) -> None:
        raise RuntimeError("boom")

    checker.api.timers.later(exploding, 1)
    checker.api.timers.later(lambda value: None, 2)

    with pytest.raises(RuntimeError, match="boom"):
        scheduler.run_until_idle()
    assert scheduler.pending == 0
    with pytest.raises(RuntimeError, match="boom"):
        checker.done()


def test_swallowed_mismatch_still_fails_done(live_api: SimpleNamespace) -> None:
    checker = Checker.from_dict(_record_storage(live_api))

    try:
        checker.api.storage.set("wrong", 0)
    except ReplayMismatchError:
        pass

    with pytest.raises(CallMismatchError, match="wrong"):
        checker.done()


def test_async_callbacks_on_a_running_event_loop(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["timers.later"])
    recorder.api.timers.later(lambda value: None, "ready")
    live_api.timers.flush()
    document = recorder.to_dict()

    async def scenario() -> list[str]:
        checker = Checker.from_dict(document)
        seen: list[str] = []
        checker.api.timers.later(seen.append, "ready")
        assert seen == []
        for _ in range(10):
            if not checker.remaining:
                break
            await asyncio.sleep(0)
        checker.done()
        return seen

    assert asyncio.run(scenario()) == ["ready"]


def test_async_callbacks_without_an_event_loop_fail(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["timers.later"])
    recorder.api.timers.later(lambda value: None, 1)
    live_api.timers.flush()

    checker = recorder.checker()

    with pytest.raises(SchedulerError, match="running asyncio event loop"):
        checker.api.timers.later(lambda value: None, 1)


def test_failed_arming_is_retried_under_a_running_loop(live_api: SimpleNamespace) -> None:
    recorder = Recorder(live_api, ["timers.later"])
    recorder.api.timers.later(lambda value: None, "late")
    live_api.timers.flush()

    checker = recorder.checker()
    seen: list[str] = []
    with pytest.raises(SchedulerError):
        checker.api.timers.later(seen.append, "late")
    assert checker.remaining == 1

    async def resume() -> None:
        checker._schedule_wake()
        await asyncio.sleep(0)

    asyncio.run(resume())

    assert seen == ["late"]
    checker.done()


def test_mismatch_errors_serialize_their_details(live_api: SimpleNamespace) -> None:
    checker = Checker.from_dict(_record_storage(live_api))

    with pytest.raises(CallMismatchError) as excinfo:
        checker.api.storage.set("a", 5)

    payload = excinfo.value.to_dict()
    assert payload["error_type"] == "CallMismatchError"
    assert payload["method"] == "storage.set"
    assert payload["changes"] == [
        {"path": "/arguments/args/1", "expected": 1, "actual": 5, "kind": "value"}
    ]
