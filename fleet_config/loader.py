"""
Configuration Loader (``fleet_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen dataclasses of
``fleet_config.schema``.  Runtime callers use
``fleet_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown sections, unknown payment types and unknown revenue categories
  raise ``ValueError``; nothing is silently ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value types  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from fleet_config.schema import (
    AllocationConfig,
    DatabaseConfig,
    LedgerConfig,
    LoggingConfig,
    MoneyConfig,
)

_SECTIONS = frozenset({"database", "money", "allocation", "logging"})
_PAYMENT_TYPES = frozenset({"InitialFee", "Other"})
_REVENUE_CATEGORIES = frozenset({"Initial Fees", "Other"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; ``override`` wins."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge(result[key], value)
        else:
            result[key] = value
    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    return value


def _int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{section}.{key} must be an integer, got {value!r}")
    return value


def _bool(section: str, key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{section}.{key} must be true or false, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    default = DatabaseConfig()
    url = data.get("url", default.url)
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")
    return DatabaseConfig(
        url=url,
        echo=_bool("database", "echo", data.get("echo", default.echo)),
        pool_size=_int("database", "pool_size", data.get("pool_size", default.pool_size)),
        max_overflow=_int("database", "max_overflow", data.get("max_overflow", default.max_overflow)),
        pool_timeout=_int("database", "pool_timeout", data.get("pool_timeout", default.pool_timeout)),
        pool_recycle=_int("database", "pool_recycle", data.get("pool_recycle", default.pool_recycle)),
    )


def parse_money(data: dict[str, Any]) -> MoneyConfig:
    default = MoneyConfig()
    places = _int("money", "decimal_places", data.get("decimal_places", default.decimal_places))
    if not 0 <= places <= 6:
        raise ValueError(f"money.decimal_places must be between 0 and 6, got {places}")
    return MoneyConfig(
        currency=str(data.get("currency", default.currency)),
        decimal_places=places,
    )


def parse_allocation(data: dict[str, Any]) -> AllocationConfig:
    default = AllocationConfig()
    raw = data.get("direct_revenue_categories")
    if raw is None:
        categories = default.direct_revenue_categories
    else:
        if not isinstance(raw, dict):
            raise ValueError("allocation.direct_revenue_categories must be a mapping")
        for payment_type, category in raw.items():
            if payment_type not in _PAYMENT_TYPES:
                raise ValueError(
                    f"allocation.direct_revenue_categories: unknown payment type {payment_type!r}"
                )
            if category not in _REVENUE_CATEGORIES:
                raise ValueError(
                    f"allocation.direct_revenue_categories: unknown category {category!r}"
                )
        categories = tuple(sorted(raw.items()))
    return AllocationConfig(
        direct_revenue_categories=categories,
        include_rental_less_charges=_bool(
            "allocation",
            "include_rental_less_charges",
            data.get("include_rental_less_charges", default.include_rental_less_charges),
        ),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", LoggingConfig().level)).upper()
    if level not in logging.getLevelNamesMapping():
        raise ValueError(f"logging.level: unknown level {level!r}")
    return LoggingConfig(level=level)


def parse_config(data: dict[str, Any], source: str = "") -> LedgerConfig:
    """Parse a merged configuration dict into a LedgerConfig."""
    unknown = set(data) - _SECTIONS
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")
    return LedgerConfig(
        database=parse_database(_section(data, "database")),
        money=parse_money(_section(data, "money")),
        allocation=parse_allocation(_section(data, "allocation")),
        logging=parse_logging(_section(data, "logging")),
        checksum=compute_checksum(data),
        source=source,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
