"""JSON schema and validation for MirrorKit checker documents."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from mirrorpack.core.exceptions import LogFormatError

METHOD_PATH_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$"


def _kind_is(kind: str) -> dict[str, Any]:
    return {
        "type": "object",
        "required": ["kind"],
        "properties": {"kind": {"const": kind}},
    }


LOG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "MirrorKit checker log",
    "type": "object",
    "required": ["kind", "log", "methods"],
    "additionalProperties": True,
    "properties": {
        "kind": {"const": "checker"},
        "methods": {
            "type": "array",
            "uniqueItems": True,
            "items": {"type": "string", "pattern": METHOD_PATH_PATTERN},
        },
        "log": {"type": "array", "items": {"$ref": "#/$defs/event"}},
    },
    "$defs": {
        "event": {
            "type": "object",
            "required": ["kind"],
            "properties": {
                "kind": {"enum": ["call", "call_return", "callback_invocation"]},
            },
            "allOf": [
                {"if": _kind_is("call"), "then": {"$ref": "#/$defs/call"}},
                {"if": _kind_is("call_return"), "then": {"$ref": "#/$defs/call_return"}},
                {
                    "if": _kind_is("callback_invocation"),
                    "then": {"$ref": "#/$defs/callback_invocation"},
                },
            ],
        },
        "call": {
            "type": "object",
            "required": ["kind", "name", "arguments"],
            "properties": {
                "kind": {"const": "call"},
                "name": {"type": "string", "pattern": METHOD_PATH_PATTERN},
                "arguments": {"$ref": "#/$defs/argument_list"},
            },
        },
        "call_return": {
            "type": "object",
            "required": ["kind", "call_index", "value"],
            "properties": {
                "kind": {"const": "call_return"},
                "call_index": {"type": "integer", "minimum": 0},
                "value": {"$ref": "#/$defs/return_value"},
            },
        },
        "callback_invocation": {
            "type": "object",
            "required": ["kind", "callback", "arguments"],
            "properties": {
                "kind": {"const": "callback_invocation"},
                "callback": {"$ref": "#/$defs/callback"},
                "arguments": {"$ref": "#/$defs/argument_list"},
            },
        },
        "argument_list": {
            "type": "object",
            "required": ["kind", "args"],
            "properties": {
                "kind": {"const": "argument_list"},
                "args": {"type": "array", "items": {"$ref": "#/$defs/value"}},
                "kwargs": {"type": "object", "additionalProperties": {"$ref": "#/$defs/value"}},
            },
        },
        "return_value": {
            "type": "object",
            "required": ["kind", "value"],
            "properties": {
                "kind": {"const": "return_value"},
                "value": {"$ref": "#/$defs/value"},
            },
        },
        "callback": {
            "type": "object",
            "required": ["kind", "origin_index"],
            "properties": {
                "kind": {"const": "callback"},
                "origin_index": {"type": "integer", "minimum": 0},
                "slot": {"type": "integer", "minimum": 0},
            },
        },
        "wrapped_binary": {
            "type": "object",
            "required": ["kind", "subtype", "bytes"],
            "properties": {
                "kind": {"const": "wrapped_binary"},
                "subtype": {"const": "buffer"},
                "bytes": {
                    "type": "array",
                    "items": {"type": "integer", "minimum": 0, "maximum": 255},
                },
            },
        },
        "value": {
            "allOf": [
                {"if": _kind_is("wrapped_binary"), "then": {"$ref": "#/$defs/wrapped_binary"}},
                {"if": _kind_is("callback"), "then": {"$ref": "#/$defs/callback"}},
                {"if": {"type": "array"}, "then": {"items": {"$ref": "#/$defs/value"}}},
                {
                    "if": {"type": "object"},
                    "then": {"additionalProperties": {"$ref": "#/$defs/value"}},
                },
            ],
        },
    },
}


@lru_cache(maxsize=1)
def _log_validator() -> Draft202012Validator:
    return Draft202012Validator(LOG_SCHEMA)


def validate_log_document(document: Any) -> None:
    """Validate the shape and discriminator tags of a checker document."""
    error = best_match(_log_validator().iter_errors(document))
    if error is not None:
        location = "/".join(str(part) for part in error.absolute_path)
        raise LogFormatError(f"Invalid log at /{location}: {error.message}")
