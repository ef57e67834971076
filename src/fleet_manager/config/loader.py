"""Fleet config loading: packaged defaults, an optional override file, ``${VAR}`` expansion."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from fleet_manager.config.defaults import fleet_defaults, overlay
from fleet_manager.config.models import FleetConfig

# ${VAR} or ${VAR:-default}; the default runs up to the first closing brace.
_ENV_REF = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def expand_env(value: Any, where: str = "") -> Any:
    """Expand ``${VAR}`` references in every string of a parsed config tree.

    *where* is the dotted path of *value*, so an unset variable is reported
    against the setting that needs it.
    """
    if isinstance(value, dict):
        return {
            key: expand_env(item, f"{where}.{key}" if where else str(key))
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [expand_env(item, f"{where}[{i}]") for i, item in enumerate(value)]
    if not isinstance(value, str):
        return value

    def substitute(ref: re.Match[str]) -> str:
        name = ref.group("name")
        resolved = os.environ.get(name, ref.group("default"))
        if resolved is None:
            setting = where or "config"
            msg = f"{setting}: environment variable '{name}' is not set and has no default"
            raise ValueError(msg)
        return resolved

    return _ENV_REF.sub(substitute, value)


def read_config_file(path: str | Path) -> dict[str, Any]:
    """Parse an operator override file into config sections, expanding env references.

    An empty file overrides nothing.
    """
    p = Path(path)
    if not p.is_file():
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg)
    try:
        data = yaml.safe_load(p.read_text())
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        position = f" at line {mark.line + 1}, column {mark.column + 1}" if mark else ""
        msg = f"Failed to parse {p}{position}: {exc}"
        raise ValueError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{p}: expected a mapping of config sections, got {type(data).__name__}"
        raise TypeError(msg)
    return expand_env(data)  # type: ignore[no-any-return]


def load_fleet_config(path: str | Path | None = None) -> FleetConfig:
    """Build the fleet config from the packaged defaults and an optional override file."""
    settings: dict[str, Any] = expand_env(fleet_defaults())
    if path is not None:
        settings = overlay(settings, read_config_file(path))
    try:
        return FleetConfig.model_validate(settings)
    except ValidationError as exc:
        source = path or "built-in defaults"
        msg = f"Invalid fleet config ({source}):\n{exc}"
        raise ValueError(msg) from exc
