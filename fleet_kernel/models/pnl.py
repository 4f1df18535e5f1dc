"""
Module: fleet_kernel.models.pnl
Responsibility: ORM persistence for profit-and-loss entries -- revenue and
    cost postings per vehicle that feed fleet profitability reporting.  These
    are distinct from customer-debt accounting.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - amount > 0; the side (Revenue/Cost) carries the direction.
    - UNIQUE(payment_id, category): one P&L row per payment per category no
      matter how often allocation is replayed.
    - UNIQUE(reference): one row per non-payment source
      (``authority:<id>``, ``acquisition:<vehicle_id>``).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fleet_kernel.db.base import TrackedBase, UUIDString


class PnlEntry(TrackedBase):
    """
    A revenue or cost posting.

    Contract:
        Rows with ``payment_id`` are derived by payment processing and rebuilt
        by the reprocessor.  Rows without ``payment_id`` (acquisition costs,
        authority fine payments) are manual postings the reprocessor never
        touches.
    """

    __tablename__ = "pnl_entries"

    __table_args__ = (
        UniqueConstraint("payment_id", "category", name="uq_pnl_payment_category"),
        UniqueConstraint("reference", name="uq_pnl_reference"),
        CheckConstraint("amount > 0", name="ck_pnl_amount_positive"),
        Index("idx_pnl_vehicle", "vehicle_id"),
        Index("idx_pnl_side_category", "side", "category"),
    )

    vehicle_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("vehicles.id"),
        nullable=True,
    )

    customer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("customers.id"),
        nullable=True,
    )

    rental_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("rentals.id"),
        nullable=True,
    )

    entry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    # PnlSide.value
    side: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    # PnlCategory.value
    category: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=True,
    )

    source_ref: Mapped[str | None] = mapped_column(
        String(120),
        nullable=True,
    )

    reference: Mapped[str | None] = mapped_column(
        String(120),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<PnlEntry {self.side}/{self.category} {self.amount} vehicle={self.vehicle_id}>"
