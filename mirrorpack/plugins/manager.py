"""Fan lifecycle events out to plugins without letting them affect the engines."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
import warnings

from mirrorpack.plugins.base import LifecycleEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PluginDiagnostic:
    """A failed hook call. `position` is the log position for per-event hooks."""

    plugin_name: str
    hook: str
    error_type: str
    message: str
    position: int | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(slots=True)
class PluginManager:
    """Delivers each event to the plugins that implement its hook.

    A raising plugin is recorded in `diagnostics`. Per-event hooks run once
    per logged event, so each (plugin, hook) pair warns only on its first
    failure.
    """

    plugins: tuple[object, ...] = ()
    diagnostics: list[PluginDiagnostic] = field(default_factory=list)
    _warned: set[tuple[str, str]] = field(default_factory=set, init=False, repr=False)

    def emit(self, event: LifecycleEvent) -> None:
        for plugin in self.plugins:
            handler = getattr(plugin, event.hook, None)
            if handler is None:
                continue
            try:
                handler(event)
            except Exception as error:
                self._report(plugin, event, error)

    def _report(self, plugin: object, event: LifecycleEvent, error: Exception) -> None:
        plugin_name = str(getattr(plugin, "name", type(plugin).__name__))
        diagnostic = PluginDiagnostic(
            plugin_name=plugin_name,
            hook=event.hook,
            error_type=type(error).__name__,
            message=str(error),
            position=getattr(event, "position", None),
        )
        self.diagnostics.append(diagnostic)
        logger.debug("plugin %s failed in %s", plugin_name, event.hook, exc_info=error)

        key = (plugin_name, event.hook)
        if key in self._warned:
            return
        self._warned.add(key)
        warnings.warn(
            f"MirrorKit plugin {plugin_name!r} failed in {event.hook} "
            f"({diagnostic.error_type}: {diagnostic.message}); further failures of this "
            "hook are only kept in PluginManager.diagnostics.",
            RuntimeWarning,
            stacklevel=3,
        )
