"""
fleet_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  It merges the packaged ``defaults.yaml`` with an optional
    override file and environment overrides, parses the result into frozen
    dataclasses and logs a trace record with the configuration checksum.

Architecture position:
    Configuration -- sits above ``fleet_kernel`` and below
    ``fleet_services``.  The kernel MUST NEVER import from ``fleet_config``;
    ``fleet_config.bridges`` translates the configuration into kernel
    constructor arguments.

Environment:
    FLEET_LEDGER_CONFIG     path of a YAML override file
    DATABASE_URL            overrides ``database.url``
    FLEET_LEDGER_LOG_LEVEL  overrides ``logging.level``

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``ValueError`` -- schema validation failed.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from fleet_config.loader import load_yaml_file, merge, parse_config
from fleet_config.schema import (
    AllocationConfig,
    DatabaseConfig,
    LedgerConfig,
    LoggingConfig,
    MoneyConfig,
)

_logger = logging.getLogger("fleet_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_ENV = "FLEET_LEDGER_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"
LOG_LEVEL_ENV = "FLEET_LEDGER_LOG_LEVEL"


def get_active_config(path: Path | str | None = None, *, use_env: bool = True) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override file.  Defaults to ``$FLEET_LEDGER_CONFIG`` when set.
        use_env: Apply environment overrides.  Tests pass False to get a
            configuration that depends on files only.

    Returns:
        LedgerConfig with its source checksum.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    sources = [str(DEFAULTS_PATH)]

    if path is None and use_env:
        path = os.environ.get(CONFIG_ENV) or None
    if path is not None:
        data = merge(data, load_yaml_file(Path(path)))
        sources.append(str(path))

    if use_env:
        env_overrides: dict = {}
        if os.environ.get(DATABASE_URL_ENV):
            env_overrides.setdefault("database", {})["url"] = os.environ[DATABASE_URL_ENV]
        if os.environ.get(LOG_LEVEL_ENV):
            env_overrides.setdefault("logging", {})["level"] = os.environ[LOG_LEVEL_ENV]
        if env_overrides:
            data = merge(data, env_overrides)
            sources.append("env")

    config = parse_config(data, source=" + ".join(sources))

    _logger.info(
        "FLEET_CONFIG_TRACE",
        extra={
            "trace_type": "FLEET_CONFIG_TRACE",
            "config_source": config.source,
            "checksum": config.checksum,
            "decimal_places": config.money.decimal_places,
            "database_dialect": config.database.url.split(":", 1)[0],
        },
    )
    return config


__all__ = [
    "AllocationConfig",
    "DatabaseConfig",
    "LedgerConfig",
    "LoggingConfig",
    "MoneyConfig",
    "get_active_config",
]
