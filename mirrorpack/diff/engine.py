"""O(n) log diff engine with first-divergence detection."""

from __future__ import annotations

from typing import Any, Mapping

from mirrorpack.diff.models import EventDiff, LogDiffResult, ValueChange

MISSING = object()


def diff_logs(
    baseline: Mapping[str, Any],
    candidate: Mapping[str, Any],
    *,
    stop_at_first_divergence: bool = False,
    max_changes_per_event: int = 32,
) -> LogDiffResult:
    """Diff two checker documents event by event.

    Events are compared by ordered position, so an inserted or dropped event
    shows up as a divergence at its index and at every later one.
    """
    baseline_events = list(baseline.get("log", []))
    candidate_events = list(candidate.get("log", []))

    method_changes: list[ValueChange] = []
    baseline_methods = list(baseline.get("methods", []))
    candidate_methods = list(candidate.get("methods", []))
    if baseline_methods != candidate_methods:
        method_changes.append(
            ValueChange(path="/methods", expected=baseline_methods, actual=candidate_methods)
        )

    event_diffs: list[EventDiff] = []
    for idx in range(max(len(baseline_events), len(candidate_events))):
        baseline_event = baseline_events[idx] if idx < len(baseline_events) else None
        candidate_event = candidate_events[idx] if idx < len(candidate_events) else None

        event_diff = _diff_event(
            index=idx,
            baseline_event=baseline_event,
            candidate_event=candidate_event,
            max_changes=max(1, max_changes_per_event),
        )
        event_diffs.append(event_diff)

        if stop_at_first_divergence and event_diff.status != "identical":
            break

    return LogDiffResult(
        total_baseline_events=len(baseline_events),
        total_candidate_events=len(candidate_events),
        event_diffs=event_diffs,
        method_changes=method_changes,
    )


def _diff_event(
    *,
    index: int,
    baseline_event: Mapping[str, Any] | None,
    candidate_event: Mapping[str, Any] | None,
    max_changes: int,
) -> EventDiff:
    if baseline_event is None:
        return EventDiff(
            index=index,
            status="missing_baseline",
            baseline_kind=None,
            candidate_kind=_kind(candidate_event),
            changes=[
                ValueChange(
                    path=f"/log/{index}",
                    expected="<MISSING>",
                    actual=candidate_event,
                    kind="missing",
                )
            ],
        )

    if candidate_event is None:
        return EventDiff(
            index=index,
            status="missing_candidate",
            baseline_kind=_kind(baseline_event),
            candidate_kind=None,
            changes=[
                ValueChange(
                    path=f"/log/{index}",
                    expected=baseline_event,
                    actual="<MISSING>",
                    kind="missing",
                )
            ],
        )

    changes: list[ValueChange] = []
    truncated = collect_value_changes(
        baseline_event,
        candidate_event,
        path=f"/log/{index}",
        out=changes,
        max_changes=max_changes,
    )

    return EventDiff(
        index=index,
        status="changed" if changes else "identical",
        baseline_kind=_kind(baseline_event),
        candidate_kind=_kind(candidate_event),
        changes=changes,
        truncated_changes=truncated,
    )


def _kind(event: Mapping[str, Any] | None) -> str | None:
    if not isinstance(event, Mapping):
        return None
    kind = event.get("kind")
    return str(kind) if kind is not None else None


def collect_value_changes(
    expected: Any,
    actual: Any,
    *,
    path: str,
    out: list[ValueChange],
    max_changes: int,
) -> bool:
    """Append the JSON-level differences between two trees to `out`.

    Returns True once `max_changes` entries have been collected.
    """
    if len(out) >= max_changes:
        return True

    if expected is MISSING or actual is MISSING:
        out.append(
            ValueChange(
                path=path,
                expected="<MISSING>" if expected is MISSING else expected,
                actual="<MISSING>" if actual is MISSING else actual,
                kind="missing",
            )
        )
        return len(out) >= max_changes

    if type(expected) is not type(actual) and not _both_numbers(expected, actual):
        out.append(ValueChange(path=path, expected=expected, actual=actual, kind="type"))
        return len(out) >= max_changes

    if isinstance(expected, dict):
        truncated = False
        keys = sorted(set(expected.keys()) | set(actual.keys()), key=str)
        for key in keys:
            truncated |= collect_value_changes(
                expected.get(key, MISSING),
                actual.get(key, MISSING),
                path=f"{path}/{escape_json_pointer(str(key))}",
                out=out,
                max_changes=max_changes,
            )
            if len(out) >= max_changes:
                return True
        return truncated

    if isinstance(expected, list):
        truncated = False
        for idx in range(max(len(expected), len(actual))):
            truncated |= collect_value_changes(
                expected[idx] if idx < len(expected) else MISSING,
                actual[idx] if idx < len(actual) else MISSING,
                path=f"{path}/{idx}",
                out=out,
                max_changes=max_changes,
            )
            if len(out) >= max_changes:
                return True
        return truncated

    if expected != actual:
        out.append(ValueChange(path=path, expected=expected, actual=actual))
        return len(out) >= max_changes

    return False


def _both_numbers(left: Any, right: Any) -> bool:
    # bool is an int subclass but never equal to a number in JSON terms
    return (
        isinstance(left, (int, float))
        and isinstance(right, (int, float))
        and not isinstance(left, bool)
        and not isinstance(right, bool)
    )


def escape_json_pointer(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")
