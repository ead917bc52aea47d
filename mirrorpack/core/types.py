"""Type definitions for MirrorKit wire nodes."""

from typing import Literal

EventKind = Literal[
    "call",
    "call_return",
    "callback_invocation",
]

EVENT_KINDS: tuple[str, ...] = (
    "call",
    "call_return",
    "callback_invocation",
)

NodeKind = Literal[
    "call",
    "call_return",
    "callback",
    "callback_invocation",
    "argument_list",
    "return_value",
    "checker",
    "wrapped_binary",
]

NODE_KINDS: tuple[str, ...] = (
    "call",
    "call_return",
    "callback",
    "callback_invocation",
    "argument_list",
    "return_value",
    "checker",
    "wrapped_binary",
)

KIND_FIELD = "kind"
BINARY_SUBTYPE = "buffer"
