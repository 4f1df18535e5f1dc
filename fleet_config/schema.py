"""
Ledger configuration schema.

Frozen dataclasses parsed from YAML by ``fleet_config.loader``.  Nothing in
here reads files or the environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings handed to ``fleet_kernel.db.engine``."""

    url: str = "sqlite:///fleet_ledger.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class MoneyConfig:
    currency: str = "GBP"
    decimal_places: int = 2


@dataclass(frozen=True)
class AllocationConfig:
    """
    Allocation behaviour.

    ``direct_revenue_categories`` maps a non-rental payment type to the
    ledger/P&L category its revenue is booked under.
    ``include_rental_less_charges`` lets a rental payment settle charges with
    no rental (fines) alongside that rental's installments.
    """

    direct_revenue_categories: tuple[tuple[str, str], ...] = (
        ("InitialFee", "Initial Fees"),
        ("Other", "Initial Fees"),
    )
    include_rental_less_charges: bool = True

    def direct_revenue_map(self) -> dict[str, str]:
        return dict(self.direct_revenue_categories)


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class LedgerConfig:
    """Complete runtime configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    money: MoneyConfig = field(default_factory=MoneyConfig)
    allocation: AllocationConfig = field(default_factory=AllocationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
    source: str = ""
