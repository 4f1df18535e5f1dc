"""
Module: fleet_kernel.models.payment
Responsibility: ORM persistence for customer payments and the applications
    that join a payment to the charges it settled.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - amount > 0 (CHECK constraint).
    - amount_applied > 0 (CHECK constraint).
    - UNIQUE(payment_id, charge_id): a payment settles a given charge at most
      once per processing run.
    - seq is the monotonic creation order used to break payment-date ties in
      replay (UNIQUE).

Failure modes:
    - IntegrityError on a duplicate (payment_id, charge_id) application, which
      is how a racing second allocation of the same payment is detected.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleet_kernel.db.base import TrackedBase, UUIDString
from fleet_kernel.domain.values import PaymentStatus

if TYPE_CHECKING:
    from fleet_kernel.models.charge import Charge


class Payment(TrackedBase):
    """
    A customer payment event.

    Contract:
        Immutable once created except for ``status`` and ``processed_at``,
        which the allocation service and the reprocessor maintain.

    Guarantees:
        - ``payment_type`` is a PaymentType value.
        - ``status`` is a PaymentStatus value; PENDING until processed.

    Non-goals:
        - Does NOT store the unapplied remainder; it is derived as
          ``amount - sum(applications.amount_applied)``.
    """

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_payment_seq"),
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        Index("idx_payment_customer", "customer_id"),
        Index("idx_payment_replay_order", "payment_date", "seq"),
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

    rental_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("rentals.id"),
        nullable=True,
    )

    vehicle_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("vehicles.id"),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    payment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    # PaymentType.value
    payment_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    method: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING.value,
    )

    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    applications: Mapped[list["PaymentApplication"]] = relationship(
        back_populates="payment",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Payment #{self.seq} {self.payment_type} {self.amount} "
            f"on {self.payment_date} [{self.status}]>"
        )


class PaymentApplication(TrackedBase):
    """
    The portion of a payment applied to one charge.

    Guarantees:
        - ``amount_applied`` is strictly positive.
        - Applications are only created by the allocation service and only
          deleted by the reprocessor.
    """

    __tablename__ = "payment_applications"

    __table_args__ = (
        UniqueConstraint("payment_id", "charge_id", name="uq_application_payment_charge"),
        CheckConstraint("amount_applied > 0", name="ck_application_positive"),
        Index("idx_application_charge", "charge_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=False,
    )

    charge_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("charges.id"),
        nullable=False,
    )

    amount_applied: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    payment: Mapped[Payment] = relationship(back_populates="applications")
    charge: Mapped["Charge"] = relationship(back_populates="applications")

    def __repr__(self) -> str:
        return f"<PaymentApplication {self.payment_id} -> {self.charge_id}: {self.amount_applied}>"
