"""Core data models for MirrorKit interaction logs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Mapping, Sequence, Union

from mirrorpack.core.codec import (
    callback_node,
    decode_value,
    encode_callback,
    encode_value,
    expect_node,
    find_callback_origin,
    is_callback,
    is_node,
    match_value,
    resolve_callback,
    snapshot_value,
)
from mirrorpack.core.exceptions import CallbackResolutionError, LogFormatError, UnmatchedReturnError
from mirrorpack.core.types import KIND_FIELD
from mirrorpack.diff.engine import escape_json_pointer
from mirrorpack.diff.models import ValueChange


@dataclass(frozen=True, slots=True, eq=False)
class CallbackRef:
    """Handle to a callback, identified by the call that first passed it.

    A bound ref holds the live function. An unbound ref only knows its origin
    index and stands for a callback the current run has not seen yet.
    """

    fn: Callable[..., Any] | None = None
    origin_index: int | None = None
    slot: int = 0

    kind: ClassVar[str] = "callback"

    def origin(self, calls: Sequence["Call"]) -> tuple[int, int] | None:
        if self.fn is None:
            if self.origin_index is None:
                return None
            return self.origin_index, self.slot
        return find_callback_origin(self.fn, calls)

    def invoke(self, *args: Any, **kwargs: Any) -> Any:
        if self.fn is None:
            raise CallbackResolutionError(
                f"Callback from call #{self.origin_index} is not bound to a live function."
            )
        return self.fn(*args, **kwargs)

    def to_dict(self, calls: Sequence["Call"]) -> dict[str, Any]:
        if self.fn is None:
            if self.origin_index is None:
                raise CallbackResolutionError("Unbound callback has no origin index.")
            return callback_node(self.origin_index, self.slot)
        return encode_callback(self.fn, calls)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], calls: Sequence["Call"]) -> "CallbackRef":
        expect_node(raw, cls.kind)
        origin_index = raw.get("origin_index")
        if isinstance(origin_index, int) and origin_index >= len(calls):
            return cls(fn=None, origin_index=origin_index, slot=int(raw.get("slot", 0)))
        return resolve_callback(raw, calls)


@dataclass(frozen=True, slots=True, eq=False)
class ArgumentList:
    """Ordered call arguments: callables lifted into CallbackRefs, other values copied."""

    args: tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)

    kind: ClassVar[str] = "argument_list"

    @classmethod
    def from_live(
        cls,
        args: Sequence[Any] = (),
        kwargs: Mapping[str, Any] | None = None,
    ) -> "ArgumentList":
        return cls(
            args=tuple(_lift(value) for value in args),
            kwargs={key: _lift(value) for key, value in (kwargs or {}).items()},
        )

    def callbacks(self) -> list[CallbackRef]:
        values = list(self.args) + list(self.kwargs.values())
        return [value for value in values if isinstance(value, CallbackRef)]

    def raw(self) -> tuple[tuple[Any, ...], dict[str, Any]]:
        return (
            tuple(_lower(value) for value in self.args),
            {key: _lower(value) for key, value in self.kwargs.items()},
        )

    def to_dict(self, calls: Sequence["Call"]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            KIND_FIELD: self.kind,
            "args": [
                _encode_argument(value, calls, path=f"/args/{idx}")
                for idx, value in enumerate(self.args)
            ],
        }
        if self.kwargs:
            payload["kwargs"] = {
                key: _encode_argument(value, calls, path=f"/kwargs/{escape_json_pointer(key)}")
                for key, value in self.kwargs.items()
            }
        return payload

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], calls: Sequence["Call"]) -> "ArgumentList":
        expect_node(raw, cls.kind)
        args = raw.get("args")
        if not isinstance(args, list):
            raise LogFormatError(f"argument_list args must be a list: {dict(raw)!r}")
        kwargs = raw.get("kwargs", {})
        if not isinstance(kwargs, Mapping):
            raise LogFormatError(f"argument_list kwargs must be an object: {dict(raw)!r}")
        return cls(
            args=tuple(_decode_argument(item, calls) for item in args),
            kwargs={key: _decode_argument(item, calls) for key, item in kwargs.items()},
        )

    def match(
        self,
        raw: Mapping[str, Any],
        calls: Sequence["Call"],
        *,
        path: str = "",
    ) -> list[ValueChange]:
        """Compare these live arguments with a recorded argument_list node."""
        expect_node(raw, self.kind)
        expected_args = list(raw.get("args", []))
        expected_kwargs = dict(raw.get("kwargs", {}))
        actual_args, actual_kwargs = self.raw()

        if len(expected_args) != len(actual_args):
            return [
                ValueChange(
                    path=f"{path}/args/length",
                    expected=len(expected_args),
                    actual=len(actual_args),
                )
            ]

        changes: list[ValueChange] = []
        for idx, (actual, expected) in enumerate(zip(actual_args, expected_args)):
            changes.extend(match_value(actual, expected, calls, path=f"{path}/args/{idx}"))

        if sorted(expected_kwargs) != sorted(actual_kwargs):
            changes.append(
                ValueChange(
                    path=f"{path}/kwargs",
                    expected=sorted(expected_kwargs),
                    actual=sorted(actual_kwargs),
                    kind="missing",
                )
            )
            return changes

        for key, expected in expected_kwargs.items():
            changes.extend(
                match_value(
                    actual_kwargs[key],
                    expected,
                    calls,
                    path=f"{path}/kwargs/{escape_json_pointer(key)}",
                )
            )
        return changes


@dataclass(frozen=True, slots=True, eq=False)
class Call:
    """One invocation of a monitored API method."""

    name: str
    arguments: ArgumentList = field(default_factory=ArgumentList)

    kind: ClassVar[str] = "call"

    def callback(self, slot: int = 0) -> CallbackRef | None:
        callbacks = self.arguments.callbacks()
        if 0 <= slot < len(callbacks):
            return callbacks[slot]
        return None

    def to_dict(self, calls: Sequence["Call"]) -> dict[str, Any]:
        return {
            KIND_FIELD: self.kind,
            "name": self.name,
            "arguments": self.arguments.to_dict(calls),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], calls: Sequence["Call"]) -> "Call":
        expect_node(raw, cls.kind)
        name = raw.get("name")
        if not isinstance(name, str):
            raise LogFormatError(f"call name must be a string: {dict(raw)!r}")
        return cls(name=name, arguments=ArgumentList.from_dict(raw.get("arguments", {}), calls))

    def match(self, raw: Mapping[str, Any], calls: Sequence["Call"]) -> list[ValueChange]:
        """Compare this live call with a recorded call node."""
        expect_node(raw, self.kind)
        if raw.get("name") != self.name:
            return [ValueChange(path="/name", expected=raw.get("name"), actual=self.name)]
        return self.arguments.match(raw.get("arguments", {}), calls, path="/arguments")


@dataclass(frozen=True, slots=True)
class ReturnValue:
    """Synchronous return value of a call."""

    value: Any = None

    kind: ClassVar[str] = "return_value"

    @classmethod
    def from_live(cls, value: Any) -> "ReturnValue":
        return cls(value=snapshot_value(value))

    def to_dict(self, calls: Sequence[Call]) -> dict[str, Any]:
        return {KIND_FIELD: self.kind, "value": encode_value(self.value, calls)}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], calls: Sequence[Call]) -> "ReturnValue":
        expect_node(raw, cls.kind)
        return cls(value=decode_value(raw.get("value"), calls))


@dataclass(frozen=True, slots=True, eq=False)
class CallReturn:
    """Completion marker (and return value) of a call."""

    call: Call
    value: ReturnValue = field(default_factory=ReturnValue)

    kind: ClassVar[str] = "call_return"

    def to_dict(self, calls: Sequence[Call]) -> dict[str, Any]:
        for index in range(len(calls) - 1, -1, -1):
            if calls[index] is self.call:
                return {
                    KIND_FIELD: self.kind,
                    "call_index": index,
                    "value": self.value.to_dict(calls),
                }
        raise UnmatchedReturnError(f"Returning from call {self.call.name!r} that was never recorded.")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], calls: Sequence[Call]) -> "CallReturn":
        expect_node(raw, cls.kind)
        call_index = raw.get("call_index")
        if not isinstance(call_index, int) or isinstance(call_index, bool) or call_index < 0:
            raise LogFormatError(f"call_return call_index must be a non-negative integer: {dict(raw)!r}")
        if call_index >= len(calls):
            raise UnmatchedReturnError(
                f"call_return references call #{call_index} but only {len(calls)} call(s) exist."
            )
        return cls(call=calls[call_index], value=ReturnValue.from_dict(raw.get("value", {}), calls))


@dataclass(frozen=True, slots=True, eq=False)
class CallbackInvocation:
    """One invocation of a callback previously handed to the API."""

    callback: CallbackRef
    arguments: ArgumentList = field(default_factory=ArgumentList)

    kind: ClassVar[str] = "callback_invocation"

    def invoke(self) -> Any:
        args, kwargs = self.arguments.raw()
        return self.callback.invoke(*args, **kwargs)

    def to_dict(self, calls: Sequence[Call]) -> dict[str, Any]:
        return {
            KIND_FIELD: self.kind,
            "callback": self.callback.to_dict(calls),
            "arguments": self.arguments.to_dict(calls),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], calls: Sequence[Call]) -> "CallbackInvocation":
        expect_node(raw, cls.kind)
        return cls(
            callback=resolve_callback(raw.get("callback", {}), calls),
            arguments=ArgumentList.from_dict(raw.get("arguments", {}), calls),
        )


Event = Union[Call, CallReturn, CallbackInvocation]

_EVENT_TYPES: dict[str, type] = {
    Call.kind: Call,
    CallReturn.kind: CallReturn,
    CallbackInvocation.kind: CallbackInvocation,
}


def event_from_dict(raw: Mapping[str, Any], calls: Sequence[Call]) -> Event:
    """Decode any log event node against the calls made so far."""
    kind = raw.get(KIND_FIELD) if isinstance(raw, Mapping) else None
    event_type = _EVENT_TYPES.get(str(kind))
    if event_type is None:
        raise LogFormatError(f"Unknown log event kind {kind!r}: {raw!r}")
    return event_type.from_dict(raw, calls)


def _lift(value: Any) -> Any:
    if isinstance(value, CallbackRef):
        return value
    if is_callback(value):
        return CallbackRef(fn=value)
    return snapshot_value(value)


def _lower(value: Any) -> Any:
    if isinstance(value, CallbackRef):
        return value.fn
    return value


def _encode_argument(value: Any, calls: Sequence[Call], *, path: str) -> Any:
    if isinstance(value, CallbackRef):
        return value.to_dict(calls)
    return encode_value(value, calls, path=path)


def _decode_argument(raw: Any, calls: Sequence[Call]) -> Any:
    if is_node(raw, CallbackRef.kind):
        return CallbackRef.from_dict(raw, calls)
    return decode_value(raw, calls)
