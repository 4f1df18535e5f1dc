"""Services for the fleet ledger kernel (write side)."""

from fleet_kernel.services.allocation_service import AllocationService
from fleet_kernel.services.charge_service import ChargeService
from fleet_kernel.services.fine_service import FineService
from fleet_kernel.services.ledger_lock import LedgerLockService, maintenance_in_progress
from fleet_kernel.services.ledger_poster import LedgerPoster
from fleet_kernel.services.payment_service import PaymentService
from fleet_kernel.services.pnl_poster import PnlPoster
from fleet_kernel.services.reprocessor import Reprocessor
from fleet_kernel.services.sequence_service import SequenceService

__all__ = [
    "AllocationService",
    "ChargeService",
    "FineService",
    "LedgerLockService",
    "LedgerPoster",
    "PaymentService",
    "PnlPoster",
    "Reprocessor",
    "SequenceService",
    "maintenance_in_progress",
]
