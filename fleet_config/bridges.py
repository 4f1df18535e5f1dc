"""
Config -> Kernel Bridges.

Convert a LedgerConfig into the constructor arguments kernel services and
the database layer accept.  These live in fleet_config (the producer)
because the kernel must NEVER import fleet_config.

Usage:
    from fleet_config.bridges import allocation_options, engine_options

    config = get_active_config()
    init_engine_from_url(**engine_options(config))
    AllocationService(session, clock, **allocation_options(config))
"""

from __future__ import annotations

import logging
from typing import Any

from fleet_config.schema import LedgerConfig


def engine_options(config: LedgerConfig) -> dict[str, Any]:
    """Keyword arguments for ``fleet_kernel.db.engine.init_engine_from_url``."""
    db = config.database
    return {
        "database_url": db.url,
        "echo": db.echo,
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
        "pool_timeout": db.pool_timeout,
        "pool_recycle": db.pool_recycle,
    }


def allocation_options(config: LedgerConfig) -> dict[str, Any]:
    """Keyword arguments for AllocationService (and Reprocessor's allocation)."""
    return {
        "places": config.money.decimal_places,
        "direct_revenue_categories": config.allocation.direct_revenue_map(),
        "include_rental_less_charges": config.allocation.include_rental_less_charges,
    }


def log_level(config: LedgerConfig) -> int:
    return logging.getLevelNamesMapping()[config.logging.level]
