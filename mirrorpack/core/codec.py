"""Value codec between live call payloads and JSON-safe wire trees.

Callbacks are encoded by provenance: the index of the first call whose
arguments carried the same function. The codec therefore always works against
an ordered list of calls (anything with an ``arguments.callbacks()`` method).
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Callable, Mapping, Sequence

from mirrorpack.core.exceptions import (
    CallbackResolutionError,
    LogFormatError,
    MirrorError,
    ValueCodecError,
)
from mirrorpack.core.types import BINARY_SUBTYPE, KIND_FIELD
from mirrorpack.diff.engine import escape_json_pointer
from mirrorpack.diff.models import ValueChange

if TYPE_CHECKING:
    from mirrorpack.core.models import Call, CallbackRef

# Buffers may sit at the top level or one container deep (``{"data": b"..."}``).
MAX_BINARY_DEPTH = 1

BinaryLike = bytes | bytearray | memoryview


def is_callback(value: Any) -> bool:
    """Return True for values recorded as callbacks (classes excluded)."""
    return callable(value) and not isinstance(value, type)


def is_binary(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview))


def same_function(left: Any, right: Any) -> bool:
    """Identity check that also treats re-fetched bound methods as equal."""
    if left is right:
        return True
    if left is None or right is None:
        return False
    return bool(left == right)


def snapshot_value(value: Any) -> Any:
    """Copy a live payload so later mutation by the program cannot reach it.

    Buffers are frozen to ``bytes`` and containers are copied recursively.
    Callbacks and scalars are kept as they are.
    """
    if is_callback(value):
        return value
    if is_binary(value):
        return bytes(value)
    if isinstance(value, Mapping):
        return {key: snapshot_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [snapshot_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(snapshot_value(item) for item in value)
    return value


def is_node(value: Any, kind: str) -> bool:
    return isinstance(value, Mapping) and value.get(KIND_FIELD) == kind


def expect_node(value: Any, kind: str) -> Mapping[str, Any]:
    """Check a wire node's discriminator, raising LogFormatError otherwise."""
    if not isinstance(value, Mapping):
        raise LogFormatError(f"Expected a '{kind}' node, got {type(value).__name__}: {value!r}")
    actual = value.get(KIND_FIELD)
    if actual != kind:
        raise LogFormatError(f"Node of kind {actual!r} should be a {kind!r}: {dict(value)!r}")
    return value


def encode_binary(value: BinaryLike) -> dict[str, Any]:
    return {
        KIND_FIELD: "wrapped_binary",
        "subtype": BINARY_SUBTYPE,
        "bytes": list(bytes(value)),
    }


def decode_binary(node: Mapping[str, Any]) -> bytes:
    expect_node(node, "wrapped_binary")
    if node.get("subtype") != BINARY_SUBTYPE:
        raise LogFormatError(f"Unsupported wrapped_binary subtype: {node.get('subtype')!r}")
    try:
        return bytes(node.get("bytes", []))
    except (TypeError, ValueError) as error:
        raise LogFormatError(f"wrapped_binary bytes must be integers in 0..255: {error}") from error


def callback_node(origin_index: int, slot: int = 0) -> dict[str, Any]:
    node: dict[str, Any] = {KIND_FIELD: "callback", "origin_index": origin_index}
    if slot:
        node["slot"] = slot
    return node


def find_callback_origin(fn: Callable[..., Any], calls: Sequence["Call"]) -> tuple[int, int] | None:
    """Locate the (call index, callback slot) that first introduced `fn`."""
    for index, call in enumerate(calls):
        for slot, ref in enumerate(call.arguments.callbacks()):
            if same_function(ref.fn, fn):
                return index, slot
    return None


def encode_callback(fn: Callable[..., Any], calls: Sequence["Call"]) -> dict[str, Any]:
    origin = find_callback_origin(fn, calls)
    if origin is None:
        # Every callback must be traceable to the call that handed it over.
        raise CallbackResolutionError(
            f"Callback {_describe_function(fn)} was not passed to any recorded call."
        )
    return callback_node(*origin)


def resolve_callback(node: Mapping[str, Any], calls: Sequence["Call"]) -> "CallbackRef":
    """Return the live callback a callback node points at."""
    expect_node(node, "callback")
    origin_index = node.get("origin_index")
    slot = node.get("slot", 0)
    if not isinstance(origin_index, int) or isinstance(origin_index, bool) or origin_index < 0:
        raise LogFormatError(f"callback origin_index must be a non-negative integer: {origin_index!r}")
    if origin_index >= len(calls):
        raise CallbackResolutionError(
            f"Callback originates from call #{origin_index} but only {len(calls)} call(s) "
            "have been made so far."
        )
    ref = calls[origin_index].callback(slot)
    if ref is None:
        raise CallbackResolutionError(
            f"Call #{origin_index} ({calls[origin_index].name!r}) carries no callback in slot {slot}."
        )
    return ref


def encode_value(value: Any, calls: Sequence["Call"], *, depth: int = 0, path: str = "") -> Any:
    """Encode a live payload value into its JSON-safe representation."""
    if value is None or isinstance(value, (bool, int, str)):
        return value

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueCodecError(f"NaN and infinity cannot be recorded (at {path or '/'}).")
        return value

    if is_binary(value):
        if depth > MAX_BINARY_DEPTH:
            raise ValueCodecError(
                f"Binary buffer at {path} is nested more than {MAX_BINARY_DEPTH} level deep; "
                "only top-level buffers and buffers directly inside a dict or list are supported."
            )
        return encode_binary(value)

    if is_callback(value):
        return encode_callback(value, calls)

    if isinstance(value, Mapping):
        encoded: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueCodecError(
                    f"Mapping keys must be strings to be recorded; got {key!r} at {path or '/'}."
                )
            encoded[key] = encode_value(
                item,
                calls,
                depth=depth + 1,
                path=f"{path}/{escape_json_pointer(key)}",
            )
        return encoded

    if isinstance(value, (list, tuple)):
        return [
            encode_value(item, calls, depth=depth + 1, path=f"{path}/{idx}")
            for idx, item in enumerate(value)
        ]

    raise ValueCodecError(
        f"Unsupported value of type {type(value).__name__} at {path or '/'}; "
        "only JSON values, binary buffers and callbacks can be recorded."
    )


def decode_value(node: Any, calls: Sequence["Call"]) -> Any:
    """Decode a wire value back into a live payload value."""
    if isinstance(node, Mapping):
        kind = node.get(KIND_FIELD)
        if kind == "wrapped_binary":
            return decode_binary(node)
        if kind == "callback":
            return resolve_callback(node, calls).fn
        return {key: decode_value(item, calls) for key, item in node.items()}

    if isinstance(node, list):
        return [decode_value(item, calls) for item in node]

    return node


def match_value(
    actual: Any,
    expected: Any,
    calls: Sequence["Call"],
    *,
    path: str = "",
) -> list[ValueChange]:
    """Compare a live value against its recorded encoding.

    Returns every disagreement as a ValueChange; an empty list means equal.
    """
    changes: list[ValueChange] = []
    _match_into(actual, expected, calls, path=path, out=changes)
    return changes


def _match_into(
    actual: Any,
    expected: Any,
    calls: Sequence["Call"],
    *,
    path: str,
    out: list[ValueChange],
) -> None:
    if is_callback(actual):
        _match_callback(actual, expected, calls, path=path, out=out)
        return

    if is_binary(actual):
        if not is_node(expected, "wrapped_binary"):
            out.append(ValueChange(path=path, expected=expected, actual=encode_binary(actual), kind="type"))
            return
        if list(bytes(actual)) != list(expected.get("bytes", [])):
            out.append(
                ValueChange(path=path, expected=list(expected.get("bytes", [])), actual=list(bytes(actual)))
            )
        return

    if isinstance(actual, Mapping):
        if not isinstance(expected, Mapping) or expected.get(KIND_FIELD) in {"callback", "wrapped_binary"}:
            out.append(ValueChange(path=path, expected=expected, actual=_printable(actual), kind="type"))
            return
        for key in sorted(set(actual.keys()) | set(expected.keys()), key=str):
            child_path = f"{path}/{escape_json_pointer(str(key))}"
            if key not in expected:
                out.append(ValueChange(path=child_path, expected="<MISSING>", actual=_printable(actual[key]), kind="missing"))
            elif key not in actual:
                out.append(ValueChange(path=child_path, expected=expected[key], actual="<MISSING>", kind="missing"))
            else:
                _match_into(actual[key], expected[key], calls, path=child_path, out=out)
        return

    if isinstance(actual, (list, tuple)):
        if not isinstance(expected, list):
            out.append(ValueChange(path=path, expected=expected, actual=_printable(actual), kind="type"))
            return
        if len(actual) != len(expected):
            out.append(
                ValueChange(path=f"{path}/length", expected=len(expected), actual=len(actual))
            )
            return
        for idx, (actual_item, expected_item) in enumerate(zip(actual, expected)):
            _match_into(actual_item, expected_item, calls, path=f"{path}/{idx}", out=out)
        return

    if isinstance(actual, bool) is not isinstance(expected, bool):
        out.append(ValueChange(path=path, expected=expected, actual=actual, kind="type"))
        return

    if actual != expected:
        out.append(ValueChange(path=path, expected=expected, actual=_printable(actual)))


def _match_callback(
    actual: Callable[..., Any],
    expected: Any,
    calls: Sequence["Call"],
    *,
    path: str,
    out: list[ValueChange],
) -> None:
    if not is_node(expected, "callback"):
        out.append(
            ValueChange(path=path, expected=expected, actual=_describe_function(actual), kind="type")
        )
        return

    origin_index = expected.get("origin_index")
    slot = expected.get("slot", 0)
    if isinstance(origin_index, int) and origin_index < len(calls):
        ref = calls[origin_index].callback(slot)
        if ref is None or not same_function(ref.fn, actual):
            out.append(
                ValueChange(
                    path=path,
                    expected=f"callback introduced by call #{origin_index} ({calls[origin_index].name})",
                    actual=_describe_function(actual),
                    kind="callback",
                )
            )
        return

    # The recording saw a callback nobody had passed before.
    previous = find_callback_origin(actual, calls)
    if previous is not None:
        out.append(
            ValueChange(
                path=path,
                expected="a new callback",
                actual=(
                    f"callback introduced by call #{previous[0]} ({calls[previous[0]].name})"
                ),
                kind="callback",
            )
        )


def _printable(value: Any) -> Any:
    try:
        return encode_value(value, ())
    except MirrorError:
        return repr(value)


def _describe_function(fn: Callable[..., Any]) -> str:
    name = getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None)
    return f"<callback {name}>" if name else f"<callback {fn!r}>"
