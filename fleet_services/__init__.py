"""
fleet_services -- transactional boundary of the fleet ledger.

Owns transactions (the kernel only flushes), maps typed kernel errors to
response dicts, and records maintenance runs.
"""

from fleet_services.ledger_gateway import LedgerGateway
from fleet_services.maintenance_recorder import MaintenanceRecorder

__all__ = [
    "LedgerGateway",
    "MaintenanceRecorder",
]
