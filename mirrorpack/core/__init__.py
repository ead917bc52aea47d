"""Core models and codec for MirrorKit interaction logs."""

from mirrorpack.core.codec import (
    decode_value,
    encode_value,
    is_callback,
    match_value,
    same_function,
)
from mirrorpack.core.exceptions import (
    CallbackResolutionError,
    DanglingCallError,
    DuplicateReturnError,
    LogFormatError,
    LogIntegrityError,
    MirrorError,
    UnmatchedReturnError,
    ValueCodecError,
)
from mirrorpack.core.method_tree import (
    MethodPathError,
    MirroredApi,
    build_method_tree,
    normalize_method_paths,
    resolve_method,
)
from mirrorpack.core.models import (
    ArgumentList,
    Call,
    CallbackInvocation,
    CallbackRef,
    CallReturn,
    Event,
    ReturnValue,
    event_from_dict,
)
from mirrorpack.core.types import EVENT_KINDS, NODE_KINDS, EventKind, NodeKind

__all__ = [
    "MirrorError",
    "LogFormatError",
    "CallbackResolutionError",
    "ValueCodecError",
    "LogIntegrityError",
    "UnmatchedReturnError",
    "DuplicateReturnError",
    "DanglingCallError",
    "MethodPathError",
    "MirroredApi",
    "build_method_tree",
    "normalize_method_paths",
    "resolve_method",
    "ArgumentList",
    "Call",
    "CallbackInvocation",
    "CallbackRef",
    "CallReturn",
    "Event",
    "ReturnValue",
    "event_from_dict",
    "EVENT_KINDS",
    "NODE_KINDS",
    "EventKind",
    "NodeKind",
    "encode_value",
    "decode_value",
    "match_value",
    "is_callback",
    "same_function",
]
