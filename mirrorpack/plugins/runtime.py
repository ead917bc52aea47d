"""Which plugin manager a Recorder or Checker reports to."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from functools import lru_cache
import logging
import os
from pathlib import Path
from typing import Iterator

from mirrorpack.plugins.base import PLUGIN_CONFIG_ENV_VAR
from mirrorpack.plugins.loader import load_plugin_manager_from_file
from mirrorpack.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

_SCOPED_MANAGER: ContextVar[PluginManager | None] = ContextVar(
    "mirrorpack_plugin_manager",
    default=None,
)
_NO_PLUGINS = PluginManager()


def get_active_plugin_manager() -> PluginManager:
    """The manager of the innermost `use_plugin_manager` block.

    Outside any block, the plugins configured by the file named in
    MIRRORKIT_PLUGIN_CONFIG, loaded once per path. Otherwise no plugins.
    """
    scoped = _SCOPED_MANAGER.get()
    if scoped is not None:
        return scoped

    config_path = os.getenv(PLUGIN_CONFIG_ENV_VAR, "").strip()
    if not config_path:
        return _NO_PLUGINS
    return _configured_manager(config_path)


@lru_cache(maxsize=8)
def _configured_manager(config_path: str) -> PluginManager:
    logger.info("loading plugins from %s=%s", PLUGIN_CONFIG_ENV_VAR, config_path)
    return load_plugin_manager_from_file(config_path)


def resolve_plugin_manager(manager: PluginManager | None) -> PluginManager:
    """An explicitly passed manager wins over the active one."""
    return manager if manager is not None else get_active_plugin_manager()


@contextmanager
def use_plugin_manager(manager: PluginManager | str | Path) -> Iterator[PluginManager]:
    """Report to `manager`, or to the plugins configured in that file, inside the block."""
    if not isinstance(manager, PluginManager):
        manager = load_plugin_manager_from_file(manager)
    token = _SCOPED_MANAGER.set(manager)
    try:
        yield manager
    finally:
        _SCOPED_MANAGER.reset(token)


def reset_plugin_runtime_cache() -> None:
    """Reload MIRRORKIT_PLUGIN_CONFIG files on next use (tests, edited configs)."""
    _configured_manager.cache_clear()
