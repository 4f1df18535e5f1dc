"""
PnlPoster -- writes Revenue/Cost PnlEntry rows.

Responsibility:
    The only writer of ``pnl_entries``.  Payment-derived revenue is keyed by
    (payment_id, category); manual postings (acquisition cost, fines paid to
    an authority) are keyed by a unique ``reference`` and are idempotent.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - amount > 0; the side carries the direction.
    - Category is a PnlCategory value.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from fleet_kernel.domain.values import ZERO, PnlCategory, PnlSide, to_money
from fleet_kernel.exceptions import InvalidPnlEntryError, VehicleNotFoundError
from fleet_kernel.logging_config import get_logger
from fleet_kernel.models.fleet import Vehicle
from fleet_kernel.models.payment import Payment
from fleet_kernel.models.pnl import PnlEntry
from fleet_kernel.services.base import BaseService

logger = get_logger("services.pnl_poster")

_CATEGORIES = frozenset(c.value for c in PnlCategory)


def acquisition_reference(vehicle_id) -> str:
    return f"acquisition:{vehicle_id}"


def authority_reference(authority_payment_id) -> str:
    return f"authority:{authority_payment_id}"


class PnlPoster(BaseService):
    """Writes P&L rows.  Flush-only."""

    def __init__(self, session, clock=None, places: int = 2):
        super().__init__(session, clock)
        self._places = places

    def _validated(self, category: str, amount) -> Decimal:
        if category not in _CATEGORIES:
            raise InvalidPnlEntryError(f"unknown category {category!r}")
        amount = to_money(amount, self._places)
        if amount <= ZERO:
            raise InvalidPnlEntryError(f"amount must be positive, got {amount}")
        return amount

    def post_payment_revenue(
        self,
        payment: Payment,
        category: str,
        amount: Decimal,
        vehicle_id: UUID | None = None,
    ) -> PnlEntry:
        """Post revenue earned from ``payment`` under ``category``."""
        amount = self._validated(category, amount)
        entry = PnlEntry(
            vehicle_id=vehicle_id or payment.vehicle_id,
            customer_id=payment.customer_id,
            rental_id=payment.rental_id,
            entry_date=payment.payment_date,
            side=PnlSide.REVENUE.value,
            category=category,
            amount=amount,
            payment_id=payment.id,
            source_ref=f"payment:{payment.id}",
        )
        self.session.add(entry)
        self.session.flush()
        logger.debug(
            "pnl_revenue_posted",
            extra={
                "payment_id": str(payment.id),
                "category": category,
                "amount": str(amount),
            },
        )
        return entry

    def post_manual(
        self,
        *,
        side: PnlSide,
        category: str,
        amount: Decimal,
        entry_date: date,
        reference: str,
        vehicle_id: UUID | None = None,
        customer_id: UUID | None = None,
        source_ref: str | None = None,
    ) -> PnlEntry:
        """
        Post a non-payment row once per ``reference``.

        A second call with the same reference returns the existing row.
        """
        existing = self.session.execute(
            select(PnlEntry).where(PnlEntry.reference == reference)
        ).scalar_one_or_none()
        if existing is not None:
            logger.info("pnl_manual_exists", extra={"reference": reference})
            return existing

        amount = self._validated(category, amount)
        entry = PnlEntry(
            vehicle_id=vehicle_id,
            customer_id=customer_id,
            entry_date=entry_date,
            side=side.value,
            category=category,
            amount=amount,
            reference=reference,
            source_ref=source_ref or reference,
        )
        self.session.add(entry)
        self.session.flush()
        logger.info(
            "pnl_manual_posted",
            extra={
                "side": side.value,
                "category": category,
                "amount": str(amount),
                "reference": reference,
            },
        )
        return entry

    def post_acquisition_cost(self, vehicle_id: UUID) -> PnlEntry:
        """Post the vehicle's purchase price as an Acquisition cost."""
        vehicle = self.session.get(Vehicle, vehicle_id)
        if vehicle is None:
            raise VehicleNotFoundError(vehicle_id)
        if vehicle.purchase_price is None:
            raise InvalidPnlEntryError(f"vehicle {vehicle.reg} has no purchase price")

        return self.post_manual(
            side=PnlSide.COST,
            category=PnlCategory.ACQUISITION.value,
            amount=vehicle.purchase_price,
            entry_date=vehicle.acquisition_date or self.clock.today(),
            reference=acquisition_reference(vehicle.id),
            vehicle_id=vehicle.id,
        )
