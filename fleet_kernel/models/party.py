"""
Module: fleet_kernel.models.party
Responsibility: ORM persistence for customers, the counterparty every charge,
    payment and ledger entry belongs to.  Customer master data is owned by the
    back office's customer management; the ledger only needs identity and a
    display name.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from fleet_kernel.db.base import TrackedBase


class Customer(TrackedBase):
    """
    Renter the fleet company bills.

    Non-goals:
        - Does NOT store a balance.  The net position is always derived from
          ledger entries by the balance selector.
    """

    __tablename__ = "customers"

    __table_args__ = (
        Index("idx_customer_name", "name"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    phone: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="Active",
    )

    def __repr__(self) -> str:
        return f"<Customer {self.name}>"
