"""
Module: fleet_kernel.models.charge
Responsibility: ORM persistence for charges -- amounts a customer owes
    (rental installments and fines), each with a due date and a remaining
    balance that payment allocation draws down.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - 0 <= remaining_amount <= original_amount (CHECK constraint).
    - original_amount > 0 (CHECK constraint).
    - seq is the monotonic creation order used to break due-date ties in
      FIFO allocation (UNIQUE).

Failure modes:
    - IntegrityError if an update would push remaining_amount outside
      [0, original_amount].
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleet_kernel.db.base import TrackedBase, UUIDString
from fleet_kernel.domain.values import ZERO

if TYPE_CHECKING:
    from fleet_kernel.models.payment import PaymentApplication


class Charge(TrackedBase):
    """
    An amount owed by a customer.

    Contract:
        Created by charge scheduling (rental installments) or fine charging.
        Only the allocation service decrements ``remaining_amount``; only the
        reprocessor resets it to ``original_amount``.

    Guarantees:
        - ``original_amount - remaining_amount`` equals the sum of
          ``amount_applied`` over this charge's applications.
        - ``rental_id`` is None only for charges not tied to a rental (fines).

    Non-goals:
        - Does NOT know whether it is "due"; the balance selector applies the
          due filter against the injected clock.
    """

    __tablename__ = "charges"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_charge_seq"),
        CheckConstraint("original_amount > 0", name="ck_charge_original_positive"),
        CheckConstraint(
            "remaining_amount >= 0 AND remaining_amount <= original_amount",
            name="ck_charge_remaining_bounds",
        ),
        Index("idx_charge_customer_open", "customer_id", "remaining_amount"),
        Index("idx_charge_rental", "rental_id"),
        Index("idx_charge_due", "customer_id", "due_date", "seq"),
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("customers.id"),
        nullable=False,
    )

    vehicle_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("vehicles.id"),
        nullable=True,
    )

    rental_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("rentals.id"),
        nullable=True,
    )

    fine_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("fines.id"),
        nullable=True,
    )

    # ChargeCategory.value
    category: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    due_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    original_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    remaining_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    applications: Mapped[list["PaymentApplication"]] = relationship(
        back_populates="charge",
        passive_deletes=True,
    )

    @property
    def is_open(self) -> bool:
        return self.remaining_amount > ZERO

    def __repr__(self) -> str:
        return (
            f"<Charge #{self.seq} {self.category} due={self.due_date} "
            f"{self.remaining_amount}/{self.original_amount}>"
        )
