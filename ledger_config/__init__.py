"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_settings()``.  No kernel component reads configuration files or
    environment variables directly; they receive a LedgerSettings.

Architecture position:
    Configuration -- sits beside ``ledger_kernel``.  The kernel MUST NEVER
    import from ``ledger_config``; callers pass the settings object in
    (``LedgerStore.from_settings``, ``TransferOrchestrator.from_settings``).

Resolution order (later wins):
    1. LedgerSettings defaults.
    2. YAML file: the explicit ``path`` argument, else ``$LEDGER_CONFIG``.
    3. ``$LEDGER_DATABASE_URL`` and ``$LEDGER_LOG_LEVEL``.

Failure modes:
    - ``FileNotFoundError`` -- the named YAML file does not exist.
    - ``ValueError`` -- unknown keys, wrong value types or out-of-range values.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from ledger_config.loader import apply_env_overrides, load_yaml_file, parse_settings
from ledger_config.schema import LedgerSettings

_logger = logging.getLogger("ledger_kernel.config")

CONFIG_ENV_VAR = "LEDGER_CONFIG"


def get_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to ``$LEDGER_CONFIG``; when
            neither is set only defaults and env overrides apply.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        A validated, frozen LedgerSettings.
    """
    env = os.environ if environ is None else environ
    source = path or env.get(CONFIG_ENV_VAR)

    data = load_yaml_file(Path(source)) if source else {}
    settings = parse_settings(apply_env_overrides(data, env))

    _logger.info(
        "config_loaded",
        extra={
            "source": str(source) if source else None,
            "dialect": settings.database_url.split(":", 1)[0],
            "max_conflict_retries": settings.max_conflict_retries,
        },
    )
    return settings


__all__ = ["LedgerSettings", "get_settings"]
