"""Diff subsystem for MirrorKit logs."""

from mirrorpack.diff.engine import collect_value_changes, diff_logs, escape_json_pointer
from mirrorpack.diff.formatting import render_diff_summary, render_first_divergence
from mirrorpack.diff.models import ChangeKind, DiffStatus, EventDiff, LogDiffResult, ValueChange

__all__ = [
    "ChangeKind",
    "DiffStatus",
    "ValueChange",
    "EventDiff",
    "LogDiffResult",
    "diff_logs",
    "collect_value_changes",
    "escape_json_pointer",
    "render_diff_summary",
    "render_first_divergence",
]
