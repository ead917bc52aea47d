"""Read and write checker documents as human-editable JSON files.

Log files carry no checksum: they are meant to be edited by hand, and the
schema plus the replay-time integrity checks are what guard them.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from mirrorpack.artifact.exceptions import ArtifactValidationError
from mirrorpack.artifact.schema import validate_log_document
from mirrorpack.core.exceptions import LogFormatError


def dumps_log(document: Any) -> str:
    """Serialize a checker document (or anything with ``to_dict()``)."""
    payload = _as_document(document)
    _validate(payload, source="<document>")
    return json.dumps(payload, indent=2, ensure_ascii=True, sort_keys=True) + "\n"


def loads_log(text: str, *, source: str = "<string>") -> dict[str, Any]:
    """Parse and validate a checker document from JSON text."""
    try:
        document = json.loads(text)
    except json.JSONDecodeError as error:
        raise ArtifactValidationError(f"Log is not valid JSON: {source} ({error})") from error
    _validate(document, source=source)
    return document


def write_log(document: Any, path: str | Path) -> dict[str, Any]:
    """Write a checker document to `path`, creating parent directories."""
    payload = _as_document(document)
    text = dumps_log(payload)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    return payload


def read_log(path: str | Path) -> dict[str, Any]:
    """Read and validate a checker document from disk."""
    target = Path(path)
    try:
        raw_text = target.read_text(encoding="utf-8")
    except UnicodeDecodeError as error:
        raise ArtifactValidationError(f"Log is not valid UTF-8 text: {target}") from error
    return loads_log(raw_text, source=str(target))


def _as_document(document: Any) -> dict[str, Any]:
    to_dict = getattr(document, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(document, Mapping):
        return dict(document)
    raise TypeError(
        f"Expected a checker document or an object with to_dict(), got {type(document).__name__}."
    )


def _validate(document: Any, *, source: str) -> None:
    try:
        validate_log_document(document)
    except LogFormatError as error:
        raise ArtifactValidationError(f"{source}: {error}") from error
