"""Capture subsystem: record a live API into an interaction log."""

from mirrorpack.capture.recorder import Recorder

__all__ = ["Recorder"]
