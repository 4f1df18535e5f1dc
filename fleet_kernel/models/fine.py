"""
Module: fleet_kernel.models.fine
Responsibility: ORM persistence for traffic/parking fines and the payments the
    company makes to the issuing authority.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - Fine status transitions follow FineStatus (PAID and WAIVED terminal);
      enforced by FineService.
    - AuthorityPayment.amount > 0 (CHECK constraint).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fleet_kernel.db.base import TrackedBase, UUIDString
from fleet_kernel.domain.values import FineLiability, FineStatus


class Fine(TrackedBase):
    """
    A fine issued against a fleet vehicle.

    Contract:
        Customer-liability fines can be charged to the customer's account,
        which creates a ``Fines`` charge.  Business-liability fines stay a
        company cost (recorded via authority payments).
    """

    __tablename__ = "fines"

    __table_args__ = (
        Index("idx_fine_customer", "customer_id"),
        Index("idx_fine_vehicle", "vehicle_id"),
        Index("idx_fine_status", "status"),
    )

    customer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("customers.id"),
        nullable=True,
    )

    vehicle_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vehicles.id"),
        nullable=False,
    )

    reference_no: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    issue_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    due_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    liability: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=FineLiability.CUSTOMER.value,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=FineStatus.OPEN.value,
    )

    charged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    waived_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Fine {self.reference_no or self.id} {self.amount} [{self.status}]>"


class AuthorityPayment(TrackedBase):
    """Money the company paid to the authority that issued a fine."""

    __tablename__ = "authority_payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_authority_payment_positive"),
        Index("idx_authority_payment_fine", "fine_id"),
    )

    fine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fines.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    payment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    payment_method: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
