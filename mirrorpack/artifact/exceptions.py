"""Artifact subsystem exceptions."""

from mirrorpack.core.exceptions import LogFormatError, MirrorError


class ArtifactError(MirrorError):
    """Base class for log file errors."""


class ArtifactValidationError(ArtifactError, LogFormatError):
    """A log file is not UTF-8 JSON or does not match the log schema."""
