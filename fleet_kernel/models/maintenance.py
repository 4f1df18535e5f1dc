"""
Module: fleet_kernel.models.maintenance
Responsibility: ORM persistence for ledger maintenance -- the named lock row
    that serializes the reprocessor against payment processing, and the audit
    record of each maintenance run.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fleet_kernel.db.base import Base, TrackedBase
from fleet_kernel.domain.values import MaintenanceStatus


class LedgerLock(Base):
    """
    Named lock row.

    Payment processing reads the row ``FOR SHARE NOWAIT``; the reprocessor
    holds it ``FOR UPDATE`` for the whole rebuild.  On databases without
    row locks (SQLite) the database-level write lock gives the same
    exclusion.
    """

    __tablename__ = "ledger_locks"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    holder: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    acquired_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )


class MaintenanceRun(TrackedBase):
    """
    Audit record of one maintenance operation.

    Written in its own transaction by the gateway so that a failed, fully
    rolled back rebuild still leaves a ``failed`` record behind.
    """

    __tablename__ = "maintenance_runs"

    __table_args__ = (
        Index("idx_maintenance_started", "started_at"),
    )

    operation_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MaintenanceStatus.RUNNING.value,
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    started_by: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    payments_processed: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    customers_affected: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    total_credit_applied: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    revenue_recalculated: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    duration_seconds: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
    )

    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    failed_payment_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
    )
