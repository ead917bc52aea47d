"""Structural checks a log must pass before it can be replayed."""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Sequence

from mirrorpack.core.exceptions import (
    CallbackResolutionError,
    DanglingCallError,
    DuplicateReturnError,
    LogFormatError,
    UnmatchedReturnError,
)
from mirrorpack.core.types import KIND_FIELD


def check_log_integrity(events: Sequence[Mapping[str, Any]], methods: Sequence[str]) -> None:
    """Check call/return pairing and callback provenance of a schema-valid log.

    Raises LogFormatError for calls to undeclared methods,
    CallbackResolutionError for callback references that point past the calls
    made so far, and a LogIntegrityError subclass for broken call/return pairs.
    """
    declared = set(methods)
    names: list[str] = []
    callback_counts: list[int] = []
    returned: list[bool] = []

    for position, event in enumerate(events):
        kind = event[KIND_FIELD]

        if kind == "call":
            name = event["name"]
            if name not in declared:
                raise LogFormatError(
                    f"Event #{position} calls {name!r}, which is not a declared method "
                    f"({', '.join(methods) or 'none declared'})."
                )
            arguments = event["arguments"]
            names.append(name)
            returned.append(False)
            callback_counts.append(_count_top_level_callbacks(arguments))
            _check_references(arguments, names, callback_counts, position)

        elif kind == "call_return":
            call_index = event["call_index"]
            if call_index >= len(names):
                raise UnmatchedReturnError(
                    f"Event #{position} returns from call #{call_index}, "
                    f"but only {len(names)} call(s) precede it."
                )
            if returned[call_index]:
                raise DuplicateReturnError(
                    f"Event #{position} returns from call #{call_index} "
                    f"({names[call_index]!r}) a second time."
                )
            returned[call_index] = True
            _check_references(event["value"], names, callback_counts, position)

        else:
            _check_references(event["callback"], names, callback_counts, position)
            _check_references(event["arguments"], names, callback_counts, position)

    for call_index, done in enumerate(returned):
        if not done:
            raise DanglingCallError(
                f"Call #{call_index} ({names[call_index]!r}) never returned; "
                "the recorded method probably raised. Re-record without the failing call."
            )


def _count_top_level_callbacks(arguments: Mapping[str, Any]) -> int:
    values = list(arguments.get("args", [])) + list(arguments.get("kwargs", {}).values())
    return sum(1 for value in values if _is_callback_node(value))


def _check_references(
    node: Any,
    names: Sequence[str],
    callback_counts: Sequence[int],
    position: int,
) -> None:
    for ref in _callback_nodes(node):
        origin_index = ref["origin_index"]
        slot = ref.get("slot", 0)
        if origin_index >= len(names):
            raise CallbackResolutionError(
                f"Event #{position} references a callback from call #{origin_index}, "
                f"but only {len(names)} call(s) have been made at that point."
            )
        if slot >= callback_counts[origin_index]:
            raise CallbackResolutionError(
                f"Event #{position} references callback slot {slot} of call #{origin_index} "
                f"({names[origin_index]!r}), which passed {callback_counts[origin_index]} callback(s)."
            )


def _callback_nodes(node: Any) -> Iterator[Mapping[str, Any]]:
    if isinstance(node, Mapping):
        if _is_callback_node(node):
            yield node
            return
        for value in node.values():
            yield from _callback_nodes(value)
    elif isinstance(node, list):
        for value in node:
            yield from _callback_nodes(value)


def _is_callback_node(value: Any) -> bool:
    return isinstance(value, Mapping) and value.get(KIND_FIELD) == "callback"
