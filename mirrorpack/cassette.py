"""Record-once, replay-forever workflow around a log file."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Iterator, Literal, Sequence

from mirrorpack.artifact.io import read_log, write_log
from mirrorpack.capture.recorder import Recorder
from mirrorpack.core.exceptions import MirrorError
from mirrorpack.core.method_tree import MirroredApi, normalize_method_paths
from mirrorpack.plugins.manager import PluginManager
from mirrorpack.replay.checker import Checker
from mirrorpack.replay.scheduler import Scheduler

logger = logging.getLogger(__name__)

CassetteMode = Literal["auto", "record", "replay"]


class CassetteError(MirrorError):
    """Raised when cassette workflow input is invalid."""


@dataclass(slots=True)
class Cassette:
    """Handle yielded by `use_cassette`."""

    path: Path
    mode: Literal["record", "replay"]
    api: MirroredApi
    recorder: Recorder | None = None
    checker: Checker | None = None


def resolve_cassette_mode(mode: str, path: str | Path) -> Literal["record", "replay"]:
    if mode == "auto":
        return "replay" if Path(path).exists() else "record"
    if mode in {"record", "replay"}:
        return mode  # type: ignore[return-value]
    raise CassetteError(f"Unsupported cassette mode: {mode!r}. Use 'auto', 'record' or 'replay'.")


@contextmanager
def use_cassette(
    path: str | Path,
    methods: Sequence[str] | None = None,
    *,
    api: Any = None,
    mode: CassetteMode = "auto",
    scheduler: Scheduler | None = None,
    plugin_manager: PluginManager | None = None,
) -> Iterator[Cassette]:
    """Record `api` into `path`, or replay `path` if it already exists.

    Recording writes the log when the block exits cleanly. Replaying calls
    `Checker.done()` when the block exits cleanly, so leftover recorded
    events fail the block. Nothing is written or checked when the block
    raises.
    """
    target = Path(path)
    resolved = resolve_cassette_mode(mode, target)

    if resolved == "record":
        if api is None:
            raise CassetteError(
                f"Cassette {target} has to be recorded but no live api was given; "
                "pass api=... or record it once where the real API is available."
            )
        if methods is None:
            raise CassetteError("Recording a cassette needs the list of methods to record.")
        recorder = Recorder(api, methods, plugin_manager=plugin_manager)
        yield Cassette(path=target, mode="record", api=recorder.api, recorder=recorder)
        write_log(recorder, target)
        logger.info("recorded %d event(s) to %s", len(recorder.events), target)
        return

    if not target.exists():
        raise CassetteError(f"Cassette {target} does not exist; record it first with mode='record'.")
    document = read_log(target)
    if methods is not None:
        declared = sorted(normalize_method_paths(methods))
        if declared != sorted(document["methods"]):
            raise CassetteError(
                f"Cassette {target} was recorded for methods {sorted(document['methods'])} "
                f"but {declared} were requested; re-record it with mode='record'."
            )
    checker = Checker.from_dict(document, scheduler, plugin_manager=plugin_manager)
    yield Cassette(path=target, mode="replay", api=checker.api, checker=checker)
    checker.done()
    logger.info("replayed %s", target)
