"""
Module: fleet_engines
Responsibility:
    Package entrypoint for the pure calculation engines used by the ledger
    services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import fleet_kernel.domain and fleet_kernel.logging_config.
    MUST NOT import fleet_services or any database code.

Invariants enforced:
    - Purity: engines never read the clock; dates are passed in.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.
"""

from fleet_engines.allocation import (
    AllocationLine,
    AllocationResult,
    AllocationTarget,
    FifoAllocator,
)

__all__ = [
    "AllocationLine",
    "AllocationResult",
    "AllocationTarget",
    "FifoAllocator",
]
