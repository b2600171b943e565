"""
YAML loading and parsing for LedgerSettings.

Responsibility:
    Reads a YAML mapping from disk, applies environment overrides and
    converts the result into a validated LedgerSettings.

Failure modes:
    * Missing file      -> ``FileNotFoundError`` propagates.
    * Malformed YAML    -> ``yaml.YAMLError`` propagates.
    * Unknown key       -> ``ValueError``.
    * Wrong value type  -> ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import LedgerSettings

# Environment variable -> settings field
ENV_OVERRIDES: dict[str, str] = {
    "LEDGER_DATABASE_URL": "database_url",
    "LEDGER_LOG_LEVEL": "log_level",
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its top-level mapping.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    merged = dict(data)
    for env_name, field_name in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            merged[field_name] = value
    return merged


def parse_settings(data: Mapping[str, Any]) -> LedgerSettings:
    """
    Convert a raw mapping into LedgerSettings.

    ints are accepted for float fields; bools are rejected for numeric
    fields since YAML ``yes``/``no`` would otherwise slip through as 1/0.
    """
    types = LedgerSettings.field_types()
    unknown = sorted(set(data) - set(types))
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for name, raw in data.items():
        expected = types[name]
        if isinstance(raw, bool) or not isinstance(raw, expected):
            if expected is float and isinstance(raw, int) and not isinstance(raw, bool):
                raw = float(raw)
            else:
                raise ValueError(
                    f"Configuration key {name!r} must be {expected.__name__}, "
                    f"got {type(raw).__name__}"
                )
        values[name] = raw
    return LedgerSettings(**values)
