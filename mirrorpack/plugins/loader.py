"""Versioned plugin configuration loader.

Config files look like::

    {
      "config_version": 1,
      "plugins": [
        {"entrypoint": "mirrorpack.plugins.reference:LifecycleTracePlugin",
         "options": {"output_path": "trace.ndjson"}}
      ]
    }
"""

from __future__ import annotations

import importlib
import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from jsonschema import Draft202012Validator

from mirrorpack.plugins.base import PLUGIN_API_VERSION, PLUGIN_CONFIG_VERSION
from mirrorpack.plugins.exceptions import PluginConfigError, PluginLoadError
from mirrorpack.plugins.manager import PluginManager

PLUGIN_CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["config_version", "plugins"],
    "properties": {
        "config_version": {"const": PLUGIN_CONFIG_VERSION},
        "plugins": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["entrypoint"],
                "additionalProperties": False,
                "properties": {
                    "entrypoint": {"type": "string", "pattern": r"^[\w.]+:[\w.]+$"},
                    "options": {"type": "object"},
                    "enabled": {"type": "boolean"},
                },
            },
        },
    },
}


@lru_cache(maxsize=1)
def _config_validator() -> Draft202012Validator:
    return Draft202012Validator(PLUGIN_CONFIG_SCHEMA)


def load_plugin_manager_from_file(path: str | Path) -> PluginManager:
    """Load a plugin manager from a JSON config file."""
    config_path = Path(path)
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise PluginConfigError(f"Invalid plugin config JSON ({config_path}): {error}") from error
    return load_plugin_manager(raw, source=str(config_path))


def load_plugin_manager(config: Any, *, source: str = "<config>") -> PluginManager:
    """Build a plugin manager from an already parsed config object."""
    errors = sorted(
        _config_validator().iter_errors(config),
        key=lambda err: [str(part) for part in err.absolute_path],
    )
    if errors:
        first = errors[0]
        location = "/".join(str(part) for part in first.absolute_path) or "<root>"
        raise PluginConfigError(f"Invalid plugin config ({source}) at {location}: {first.message}")

    plugins: list[object] = []
    for index, entry in enumerate(config["plugins"], start=1):
        if not entry.get("enabled", True):
            continue
        plugins.append(_load_plugin(entry, index=index))
    return PluginManager(plugins=tuple(plugins))


def _load_plugin(entry: Mapping[str, Any], *, index: int) -> object:
    entrypoint = entry["entrypoint"]
    options = dict(entry.get("options", {}))
    target = _import_entrypoint(entrypoint, index=index)

    if callable(target):
        try:
            plugin = target(**options)
        except Exception as error:
            raise PluginLoadError(
                f"Plugin entry #{index} failed to instantiate '{entrypoint}' "
                f"with options {sorted(options)}: {error}"
            ) from error
    elif options:
        raise PluginLoadError(
            f"Plugin entry #{index} uses non-callable '{entrypoint}' and cannot accept options."
        )
    else:
        plugin = target

    version = str(getattr(plugin, "api_version", PLUGIN_API_VERSION))
    expected_major = PLUGIN_API_VERSION.split(".", 1)[0]
    if version.split(".", 1)[0] != expected_major:
        raise PluginLoadError(
            f"Plugin entry #{index} '{entrypoint}' declares unsupported api_version "
            f"{version!r}; supported major version is {expected_major}."
        )
    return plugin


def _import_entrypoint(entrypoint: str, *, index: int) -> object:
    module_name, _, attribute = entrypoint.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as error:
        raise PluginLoadError(
            f"Plugin entry #{index} failed to import module '{module_name}': {error}"
        ) from error

    target: object = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as error:
            raise PluginLoadError(
                f"Plugin entry #{index} could not find attribute '{attribute}' in '{module_name}'."
            ) from error
    return target
