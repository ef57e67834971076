"""Packaged fleet defaults and how operator overrides are laid over them."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

DEFAULTS_FILE = Path(__file__).parent / "defaults" / "fleet.yaml"


def fleet_defaults() -> dict[str, Any]:
    """Parse the packaged defaults into a fresh mapping."""
    with DEFAULTS_FILE.open() as f:
        return yaml.safe_load(f) or {}  # type: ignore[no-any-return]


def overlay(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Lay *overrides* over *defaults* section by section; neither input is mutated.

    Nested sections merge key by key. Any other value replaces the default
    outright, so list settings such as ``long_lived_kafkas`` never concatenate.
    """
    result = dict(defaults)
    for key, value in overrides.items():
        section = result.get(key)
        if isinstance(section, dict) and isinstance(value, dict):
            value = overlay(section, value)
        result[key] = value
    return result
