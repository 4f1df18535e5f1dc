"""
Module: fleet_kernel.selectors.charge_selector
Responsibility: Read-only charge queries -- open charges in FIFO order and
    single-charge lookups.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from fleet_kernel.domain.dtos import ChargeInfo
from fleet_kernel.domain.values import to_money
from fleet_kernel.exceptions import ChargeNotFoundError
from fleet_kernel.models.charge import Charge
from fleet_kernel.selectors.base import BaseSelector


def to_charge_info(charge: Charge) -> ChargeInfo:
    return ChargeInfo(
        charge_id=charge.id,
        seq=charge.seq,
        customer_id=charge.customer_id,
        category=charge.category,
        due_date=charge.due_date,
        original_amount=to_money(charge.original_amount),
        remaining_amount=to_money(charge.remaining_amount),
        rental_id=charge.rental_id,
        vehicle_id=charge.vehicle_id,
        fine_id=charge.fine_id,
    )


class ChargeSelector(BaseSelector):
    """Charge reads.  Results are ordered by (due_date, seq)."""

    def get(self, charge_id: UUID) -> ChargeInfo:
        charge = self.session.get(Charge, charge_id)
        if charge is None:
            raise ChargeNotFoundError(charge_id)
        return to_charge_info(charge)

    def list_for_customer(self, customer_id: UUID, *, open_only: bool = False) -> list[ChargeInfo]:
        stmt = select(Charge).where(Charge.customer_id == customer_id)
        if open_only:
            stmt = stmt.where(Charge.remaining_amount > 0)
        stmt = stmt.order_by(Charge.due_date, Charge.seq)
        return [to_charge_info(c) for c in self.session.execute(stmt).scalars()]

    def open_charges(self, customer_id: UUID) -> list[ChargeInfo]:
        return self.list_for_customer(customer_id, open_only=True)

    def list_for_rental(self, rental_id: UUID) -> list[ChargeInfo]:
        stmt = (
            select(Charge)
            .where(Charge.rental_id == rental_id)
            .order_by(Charge.due_date, Charge.seq)
        )
        return [to_charge_info(c) for c in self.session.execute(stmt).scalars()]
