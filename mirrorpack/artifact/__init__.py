"""Log file subsystem: wire schema and JSON read/write helpers."""

from mirrorpack.artifact.exceptions import ArtifactError, ArtifactValidationError
from mirrorpack.artifact.io import (
    dumps_log,
    loads_log,
    read_log,
    write_log,
)
from mirrorpack.artifact.schema import LOG_SCHEMA, METHOD_PATH_PATTERN, validate_log_document

__all__ = [
    "LOG_SCHEMA",
    "METHOD_PATH_PATTERN",
    "ArtifactError",
    "ArtifactValidationError",
    "validate_log_document",
    "dumps_log",
    "loads_log",
    "write_log",
    "read_log",
]
