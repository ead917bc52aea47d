"""Lifecycle plugins observing recording and replay."""

from mirrorpack.plugins.base import (
    PLUGIN_API_VERSION,
    PLUGIN_CONFIG_ENV_VAR,
    PLUGIN_CONFIG_VERSION,
    LifecycleEvent,
    LifecyclePlugin,
    RecordedEvent,
    RecordStartEvent,
    ReplayedEvent,
    ReplayEndEvent,
    ReplayStartEvent,
)
from mirrorpack.plugins.exceptions import PluginConfigError, PluginError, PluginLoadError
from mirrorpack.plugins.loader import load_plugin_manager, load_plugin_manager_from_file
from mirrorpack.plugins.manager import PluginDiagnostic, PluginManager
from mirrorpack.plugins.reference import LifecycleTracePlugin
from mirrorpack.plugins.runtime import (
    get_active_plugin_manager,
    reset_plugin_runtime_cache,
    resolve_plugin_manager,
    use_plugin_manager,
)

__all__ = [
    "PLUGIN_API_VERSION",
    "PLUGIN_CONFIG_VERSION",
    "PLUGIN_CONFIG_ENV_VAR",
    "PluginError",
    "PluginConfigError",
    "PluginLoadError",
    "RecordStartEvent",
    "RecordedEvent",
    "ReplayStartEvent",
    "ReplayedEvent",
    "ReplayEndEvent",
    "LifecycleEvent",
    "LifecyclePlugin",
    "PluginDiagnostic",
    "PluginManager",
    "LifecycleTracePlugin",
    "load_plugin_manager",
    "load_plugin_manager_from_file",
    "get_active_plugin_manager",
    "resolve_plugin_manager",
    "use_plugin_manager",
    "reset_plugin_runtime_cache",
]
