"""
Module: fleet_kernel.models.ledger
Responsibility: ORM persistence for ledger entries -- the authoritative,
    append-only record of customer debt.  Customer balances are derived from
    these rows and nothing else.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Sign convention (fixed for the life of the system): Charge rows carry a
      positive amount (owed), Payment rows a negative amount (paid).
    - Idempotency.  UNIQUE(payment_id, category, line_key) makes a second
      allocation of the same payment collide at the data layer instead of
      writing duplicate rows.
    - UNIQUE(reference) keeps one mirror row per charge (``charge:<id>``).

Failure modes:
    - IntegrityError on duplicate (payment_id, category, line_key) under a
      concurrent retry; the allocation service converts it to an idempotent
      ALREADY_PROCESSED result.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fleet_kernel.db.base import TrackedBase, UUIDString

# line_key values
LINE_KEY_CHARGE = "charge"
LINE_KEY_UNAPPLIED = "unapplied"
LINE_KEY_REVENUE = "revenue"


def settled_line_key(charge_id) -> str:
    """line_key for the Payment row recording a portion applied to a charge."""
    return f"charge:{charge_id}"


def charge_reference(charge_id) -> str:
    return f"charge:{charge_id}"


class LedgerEntry(TrackedBase):
    """
    One accounting line on a customer's ledger.

    Contract:
        Charge rows mirror a Charge (same amounts, ``remaining_amount`` kept in
        lockstep by the allocation service).  Payment rows are written only by
        payment processing and always carry ``payment_id``.

    Guarantees:
        - ``type`` is a LedgerEntryType value, ``category`` a LedgerCategory
          value.
        - ``remaining_amount`` is set on Charge rows and None on Payment rows.
        - Payment rows for a settled portion carry the settled charge's
          ``due_date`` and ``charge_id``.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint(
            "payment_id",
            "category",
            "line_key",
            name="uq_ledger_payment_posting",
        ),
        UniqueConstraint("reference", name="uq_ledger_reference"),
        Index("idx_ledger_customer", "customer_id"),
        Index("idx_ledger_payment", "payment_id"),
        Index("idx_ledger_customer_type_due", "customer_id", "type", "due_date"),
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

    charge_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("charges.id"),
        nullable=True,
    )

    payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=True,
    )

    entry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    # LedgerEntryType.value
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # LedgerCategory.value
    category: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    # Signed: charges positive, payments negative
    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    due_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    remaining_amount: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    line_key: Mapped[str] = mapped_column(
        String(60),
        nullable=False,
    )

    reference: Mapped[str | None] = mapped_column(
        String(120),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.type}/{self.category} {self.amount} [{self.line_key}]>"
