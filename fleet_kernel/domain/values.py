"""
Values -- monetary helpers and the ledger's enumerated vocabularies.

Responsibility:
    Normalizes monetary amounts (Decimal only, rounded to the ledger's
    minor unit with ROUND_HALF_UP) and defines the string enums persisted
    in ledger columns.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Imported by models,
    engines, selectors and services.

Invariants enforced:
    - Amounts are Decimal, never float.
    - Rounding precision is explicit (default 2 places).
    - Persisted enum values are fixed for the life of the system: ledger
      categories and types are written as ``Enum.value``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

MONEY_PLACES = 2
ZERO = Decimal("0")


def to_money(value: Decimal | str | int | float | None, places: int = MONEY_PLACES) -> Decimal:
    """
    Convert a value to a Decimal rounded to ``places`` decimal places.

    Floats are routed through ``str`` so binary noise from drivers that return
    REAL values never leaks into ledger arithmetic.

    Raises:
        ValueError: If the value cannot be interpreted as a number.
    """
    if value is None:
        value = ZERO
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid amount: {value!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    quantum = Decimal(1).scaleb(-places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


class PaymentType(str, Enum):
    """Kind of customer payment."""

    RENTAL = "Rental"
    INITIAL_FEE = "InitialFee"
    OTHER = "Other"


class PaymentStatus(str, Enum):
    """Processing status of a payment.

    PENDING -> APPLIED | PARTIAL | CREDIT.  The reprocessor resets to PENDING.
    """

    PENDING = "Pending"
    APPLIED = "Applied"
    PARTIAL = "Partial"
    CREDIT = "Credit"


class ChargeCategory(str, Enum):
    """What a charge is owed for."""

    RENTAL = "Rental"
    FINES = "Fines"


class LedgerEntryType(str, Enum):
    CHARGE = "Charge"
    PAYMENT = "Payment"


class LedgerCategory(str, Enum):
    RENTAL = "Rental"
    INITIAL_FEES = "Initial Fees"
    FINES = "Fines"
    OTHER = "Other"


class PnlSide(str, Enum):
    REVENUE = "Revenue"
    COST = "Cost"


class PnlCategory(str, Enum):
    """Fleet profitability categories."""

    RENTAL = "Rental"
    INITIAL_FEES = "Initial Fees"
    SERVICE = "Service"
    FINES = "Fines"
    ACQUISITION = "Acquisition"
    DISPOSAL = "Disposal"
    FINANCE = "Finance"
    PLATES = "Plates"
    OTHER = "Other"


class BalanceStatus(str, Enum):
    """Display label for a signed net position."""

    IN_DEBT = "In Debt"
    SETTLED = "Settled"
    IN_CREDIT = "In Credit"


class FineLiability(str, Enum):
    CUSTOMER = "Customer"
    BUSINESS = "Business"


class FineStatus(str, Enum):
    """Fine lifecycle.

    OPEN -> CHARGED -> PAID, OPEN|CHARGED -> APPEALED, any unresolved -> WAIVED.
    PAID and WAIVED are terminal.
    """

    OPEN = "Open"
    CHARGED = "Charged"
    PAID = "Paid"
    WAIVED = "Waived"
    APPEALED = "Appealed"


class MaintenanceStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
