"""CLI-friendly rendering for log diff results."""

from __future__ import annotations

import json

from mirrorpack.diff.models import LogDiffResult


def render_diff_summary(diff: LogDiffResult) -> str:
    summary = diff.summary()
    return (
        f"baseline_events={diff.total_baseline_events} "
        f"candidate_events={diff.total_candidate_events} "
        f"identical={summary['identical']} changed={summary['changed']} "
        f"missing_baseline={summary['missing_baseline']} "
        f"missing_candidate={summary['missing_candidate']}"
    )


def render_first_divergence(diff: LogDiffResult, *, max_changes: int = 8) -> str:
    lines: list[str] = []
    for change in diff.method_changes:
        lines.append(f"methods differ: {_compact(change.expected)} -> {_compact(change.actual)}")

    first = diff.first_divergence
    if first is None:
        if not lines:
            return "no divergence detected"
        return "\n".join(lines)

    lines.append(f"first divergence: event {first.index} ({first.status})")
    lines.append(
        f"baseline_kind={first.baseline_kind or '<none>'} "
        f"candidate_kind={first.candidate_kind or '<none>'}"
    )

    if first.changes:
        lines.append("changes:")
        for change in first.changes[:max_changes]:
            lines.append(f"  {change.path}: {_compact(change.expected)} -> {_compact(change.actual)}")
        if first.truncated_changes or len(first.changes) > max_changes:
            lines.append("  ... additional changes omitted")

    return "\n".join(lines)


def _compact(value: object) -> str:
    return json.dumps(value, ensure_ascii=True, sort_keys=True, default=repr)
