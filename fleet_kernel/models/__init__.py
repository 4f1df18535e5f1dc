"""Domain models for the fleet ledger kernel."""

from fleet_kernel.models.charge import Charge
from fleet_kernel.models.fine import AuthorityPayment, Fine
from fleet_kernel.models.fleet import Rental, Vehicle
from fleet_kernel.models.ledger import LedgerEntry
from fleet_kernel.models.maintenance import LedgerLock, MaintenanceRun
from fleet_kernel.models.party import Customer
from fleet_kernel.models.payment import Payment, PaymentApplication
from fleet_kernel.models.pnl import PnlEntry
from fleet_kernel.models.sequence import SequenceCounter

__all__ = [
    "Customer",
    "Vehicle",
    "Rental",
    "Charge",
    "Payment",
    "PaymentApplication",
    "LedgerEntry",
    "PnlEntry",
    "Fine",
    "AuthorityPayment",
    "LedgerLock",
    "MaintenanceRun",
    "SequenceCounter",
]
