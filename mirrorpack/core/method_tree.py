"""Build mirrored API objects from dot-separated method paths."""

from __future__ import annotations

import re
from types import SimpleNamespace
from typing import Any, Callable, Iterable, Mapping

from mirrorpack.core.exceptions import MirrorError

_SEGMENT_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# wrap(path, target, parent) -> replacement callable
MethodWrapper = Callable[[str, Any, Any], Callable[..., Any]]


class MethodPathError(MirrorError):
    """A method path is malformed or cannot be resolved on the live API."""


class MirroredApi(SimpleNamespace):
    """Namespace tree exposing only the allow-listed methods."""

    def __repr__(self) -> str:
        return f"MirroredApi({', '.join(sorted(vars(self)))})"


def normalize_method_paths(methods: Iterable[str]) -> tuple[str, ...]:
    """Validate an allow-list of method paths, preserving declaration order."""
    if isinstance(methods, str):
        raise MethodPathError("methods must be a list of paths, not a single string.")

    normalized: list[str] = []
    for raw in methods:
        if not isinstance(raw, str):
            raise MethodPathError(f"Method path must be a string: {raw!r}")
        path = raw.strip()
        segments = path.split(".")
        if not path or not all(_SEGMENT_PATTERN.match(segment) for segment in segments):
            raise MethodPathError(
                f"Invalid method path {raw!r}; use dot-separated identifiers such as 'event.addListener'."
            )
        if path in normalized:
            raise MethodPathError(f"Duplicate method path: {path!r}")
        normalized.append(path)

    for path in normalized:
        for other in normalized:
            if other.startswith(path + "."):
                raise MethodPathError(
                    f"Method path {path!r} is also a namespace of {other!r}; "
                    "a path cannot be both a method and a namespace."
                )
    return tuple(normalized)


def resolve_method(api: Any, path: str) -> tuple[Callable[..., Any], Any]:
    """Return the live callable at `path` and the object that owns it."""
    parent: Any = None
    cursor = api
    walked: list[str] = []
    for segment in path.split("."):
        parent = cursor
        walked.append(segment)
        try:
            cursor = _child(cursor, segment)
        except (AttributeError, KeyError) as error:
            raise MethodPathError(
                f"API has no member {'.'.join(walked)!r} (while resolving {path!r})."
            ) from error

    if not callable(cursor):
        raise MethodPathError(f"API member {path!r} is not callable.")
    return cursor, parent


def build_method_tree(
    methods: Iterable[str],
    wrap: MethodWrapper,
    api: Any = None,
) -> MirroredApi:
    """Build a namespace tree whose leaves are `wrap(path, target, parent)`.

    With `api` given, every path is resolved against it first, so a missing
    method fails at construction. Without it the wrapper receives None for
    target and parent.
    """
    root = MirroredApi()
    for path in normalize_method_paths(methods):
        if api is not None:
            target, parent = resolve_method(api, path)
        else:
            target, parent = None, None

        segments = path.split(".")
        node = root
        for segment in segments[:-1]:
            child = getattr(node, segment, None)
            if child is None:
                child = MirroredApi()
                setattr(node, segment, child)
            node = child
        setattr(node, segments[-1], wrap(path, target, parent))
    return root


def _child(node: Any, segment: str) -> Any:
    if isinstance(node, Mapping):
        return node[segment]
    return getattr(node, segment)
