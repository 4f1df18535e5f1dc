"""
DTOs -- frozen result objects returned across the kernel boundary.

Selectors and services return these instead of ORM instances so callers
never hold live, session-bound rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ApplyStatus(str, Enum):
    APPLIED = "applied"
    ALREADY_PROCESSED = "already_processed"


@dataclass(frozen=True)
class ApplicationLine:
    """One payment-to-charge application."""

    application_id: UUID
    payment_id: UUID
    charge_id: UUID
    amount_applied: Decimal


@dataclass(frozen=True)
class LedgerLine:
    entry_id: UUID
    customer_id: UUID
    entry_type: str
    category: str
    amount: Decimal
    entry_date: date
    due_date: date | None = None
    payment_id: UUID | None = None
    charge_id: UUID | None = None
    line_key: str | None = None


@dataclass(frozen=True)
class PnlLine:
    entry_id: UUID
    vehicle_id: UUID | None
    side: str
    category: str
    amount: Decimal
    entry_date: date
    payment_id: UUID | None = None
    reference: str | None = None


@dataclass(frozen=True)
class ApplyPaymentResult:
    """
    Outcome of ApplyPayment.

    Guarantees:
        - ``allocated + unallocated == payment amount`` for Rental payments.
        - ``status == ALREADY_PROCESSED`` means nothing was written by this call.
    """

    status: ApplyStatus
    payment_id: UUID
    payment_status: str
    allocated: Decimal
    unallocated: Decimal
    applied: tuple[ApplicationLine, ...] = ()
    ledger: tuple[LedgerLine, ...] = ()
    pnl: tuple[PnlLine, ...] = ()

    @property
    def is_new(self) -> bool:
        return self.status == ApplyStatus.APPLIED


@dataclass(frozen=True)
class ReprocessResult:
    payments_processed: int
    customers_affected: int
    total_credit_applied: Decimal
    revenue_recalculated: Decimal
    duration_seconds: float


@dataclass(frozen=True)
class BalanceSummary:
    customer_id: UUID
    balance: Decimal
    status: str
    total_charges: Decimal
    total_payments: Decimal


@dataclass(frozen=True)
class StatementLine:
    entry_id: UUID
    transaction_date: date
    entry_type: str
    category: str
    description: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal
    rental_id: UUID | None = None
    vehicle_reg: str | None = None


@dataclass(frozen=True)
class VehiclePnlSummary:
    vehicle_id: UUID
    revenue_by_category: dict[str, Decimal] = field(default_factory=dict)
    cost_by_category: dict[str, Decimal] = field(default_factory=dict)
    total_revenue: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.total_revenue - self.total_cost


@dataclass(frozen=True)
class ChargeInfo:
    charge_id: UUID
    seq: int
    customer_id: UUID
    category: str
    due_date: date
    original_amount: Decimal
    remaining_amount: Decimal
    rental_id: UUID | None = None
    vehicle_id: UUID | None = None
    fine_id: UUID | None = None

    @property
    def is_open(self) -> bool:
        return self.remaining_amount > 0


@dataclass(frozen=True)
class PaymentInfo:
    """Payment with its derived applied and remaining amounts."""

    payment_id: UUID
    seq: int
    customer_id: UUID
    amount: Decimal
    payment_date: date
    payment_type: str
    status: str
    applied: Decimal
    remaining: Decimal
    rental_id: UUID | None = None
    vehicle_id: UUID | None = None
