"""
Module: fleet_kernel.models.fleet
Responsibility: ORM persistence for vehicles and rental agreements.  Both are
    owned by collaborating subsystems (fleet and rental management); the ledger
    references them for charge scoping and per-vehicle P&L.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fleet_kernel.db.base import TrackedBase, UUIDString


class Vehicle(TrackedBase):
    """A fleet vehicle.  ``purchase_price`` feeds the Acquisition cost posting."""

    __tablename__ = "vehicles"

    __table_args__ = (
        UniqueConstraint("reg", name="uq_vehicle_reg"),
    )

    reg: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    make: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    model: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    purchase_price: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    acquisition_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="Available",
    )

    def __repr__(self) -> str:
        return f"<Vehicle {self.reg}>"


class Rental(TrackedBase):
    """
    Rental agreement between a customer and a vehicle.

    Contract:
        ``monthly_amount`` is the installment used when rental charges are
        generated.  ``end_date`` is None for open-ended rentals.
    """

    __tablename__ = "rentals"

    __table_args__ = (
        Index("idx_rental_customer", "customer_id"),
        Index("idx_rental_vehicle", "vehicle_id"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("customers.id"),
        nullable=False,
    )

    vehicle_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vehicles.id"),
        nullable=False,
    )

    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    monthly_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="Active",
    )

    def __repr__(self) -> str:
        return f"<Rental {self.id} customer={self.customer_id} vehicle={self.vehicle_id}>"
