import json
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version as package_version
import logging
from pathlib import Path
from typing import Any

import typer

from mirrorpack.artifact import ArtifactError, read_log
from mirrorpack.core.exceptions import MirrorError
from mirrorpack.diff import diff_logs, render_diff_summary, render_first_divergence
from mirrorpack.replay.integrity import check_log_integrity
from mirrorpack.summary import summarize_log

app = typer.Typer(help="MirrorKit CLI: inspect and compare recorded interaction logs.")


@dataclass(slots=True)
class _OutputOptions:
    quiet: bool = False
    no_color: bool = False
    stable_json: bool = True


_OUTPUT_OPTIONS = _OutputOptions()


def _resolve_cli_version() -> str:
    try:
        return package_version("mirrorkit")
    except PackageNotFoundError:
        from mirrorkit import __version__ as local_version

        return local_version


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(_resolve_cli_version(), color=False)
    raise typer.Exit()


@app.callback()
def app_options(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show MirrorKit version and exit.",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        help="Suppress non-error text output.",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable ANSI color output.",
    ),
    stable_json: bool = typer.Option(
        True,
        "--stable-json/--pretty-json",
        help="Emit stable compact JSON (or pretty JSON).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Log debug output from the MirrorKit library to stderr.",
    ),
) -> None:
    """Global output controls for all CLI commands."""
    _OUTPUT_OPTIONS.quiet = quiet
    _OUTPUT_OPTIONS.no_color = no_color
    _OUTPUT_OPTIONS.stable_json = stable_json
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _echo(message: str, *, err: bool = False, force: bool = False) -> None:
    if _OUTPUT_OPTIONS.quiet and not err and not force:
        return
    typer.echo(message, err=err, color=not _OUTPUT_OPTIONS.no_color)


def _echo_json(payload: dict[str, Any], *, err: bool = False) -> None:
    if _OUTPUT_OPTIONS.stable_json:
        rendered = json.dumps(
            payload,
            ensure_ascii=True,
            sort_keys=True,
            separators=(",", ":"),
            default=repr,
        )
    else:
        rendered = json.dumps(
            payload,
            ensure_ascii=True,
            sort_keys=True,
            indent=2,
            default=repr,
        )
    typer.echo(rendered, err=err, color=not _OUTPUT_OPTIONS.no_color)


def _fail(command: str, error: Exception, *, json_output: bool, **context: Any) -> typer.Exit:
    message = f"{command} failed: {error}"
    if json_output:
        _echo_json(
            {
                "status": "error",
                "exit_code": 1,
                "error_type": error.__class__.__name__,
                "message": message,
                **context,
            }
        )
    else:
        _echo(message, err=True)
    return typer.Exit(code=1)


@app.command()
def validate(
    log: Path = typer.Argument(..., help="Path to a checker log (.json)."),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit machine-readable validation output.",
    ),
) -> None:
    """Check a log's schema and call/return structure."""
    try:
        document = read_log(log)
        check_log_integrity(document["log"], document["methods"])
    except (MirrorError, FileNotFoundError) as error:
        raise _fail("validate", error, json_output=json_output, log_path=str(log)) from error

    if json_output:
        _echo_json(
            {
                "status": "ok",
                "exit_code": 0,
                "valid": True,
                "message": "log is replayable",
                "log_path": str(log),
                "event_count": len(document["log"]),
            }
        )
        return
    _echo(f"validate passed: {log} ({len(document['log'])} events)")


@app.command()
def inspect(
    log: Path = typer.Argument(..., help="Path to a checker log (.json)."),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit machine-readable summary output.",
    ),
) -> None:
    """Summarize the calls and callbacks recorded in a log."""
    try:
        document = read_log(log)
    except (ArtifactError, FileNotFoundError) as error:
        raise _fail("inspect", error, json_output=json_output, log_path=str(log)) from error

    summary = summarize_log(document)
    if json_output:
        _echo_json(
            {
                **summary.to_dict(),
                "status": "ok",
                "exit_code": 0,
                "log_path": str(log),
            }
        )
        return

    _echo(f"log: {log}")
    _echo(
        f"events={summary.event_count} "
        + " ".join(f"{kind}={count}" for kind, count in summary.events_by_kind.items())
    )
    _echo(
        f"callbacks: sync={summary.sync_invocations} async={summary.async_invocations} "
        f"max_call_depth={summary.max_call_depth}"
    )
    _echo("calls by method:")
    for name, count in summary.calls_by_method.items():
        _echo(f"  {name}: {count}")
    if summary.open_calls:
        _echo(
            "warning: calls that never returned: "
            + ", ".join(f"#{index}" for index in summary.open_calls),
            err=True,
        )


@app.command()
def diff(
    left: Path = typer.Argument(..., help="Path to the baseline log."),
    right: Path = typer.Argument(..., help="Path to the candidate log."),
    first_divergence: bool = typer.Option(
        False,
        "--first-divergence",
        help="Stop scanning at the first divergent event.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit machine-readable diff output.",
    ),
    max_changes: int = typer.Option(
        8,
        "--max-changes",
        help="Maximum number of value-level changes to print in text mode.",
    ),
) -> None:
    """Diff two logs and identify the first divergent event."""
    try:
        left_document = read_log(left)
        right_document = read_log(right)
    except (ArtifactError, FileNotFoundError) as error:
        raise _fail(
            "diff",
            error,
            json_output=json_output,
            left_path=str(left),
            right_path=str(right),
        ) from error

    result = diff_logs(
        left_document,
        right_document,
        stop_at_first_divergence=first_divergence,
        max_changes_per_event=max(1, max_changes),
    )
    exit_code = 0 if result.identical else 1

    if json_output:
        _echo_json(
            {
                **result.to_dict(),
                "status": "ok",
                "exit_code": exit_code,
                "left_path": str(left),
                "right_path": str(right),
            }
        )
    else:
        _echo(render_diff_summary(result))
        _echo(render_first_divergence(result, max_changes=max_changes))

    if exit_code:
        raise typer.Exit(code=exit_code)


def main() -> None:
    app()
