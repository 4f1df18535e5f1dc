"""
Reprocessor -- ReapplyAllPayments: rebuild every payment-derived row.

Responsibility:
    Recovers from allocation drift and applies credit sitting unapplied
    since charges were added.  Deletes every PaymentApplication and every
    ledger/P&L row that carries a payment id, resets charges, payments and
    paid fine statuses, then replays all payments in chronological order
    through AllocationService.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the gateway, which owns the transaction.

Invariants enforced:
    - Exclusive: holds the ledger lock for the whole rebuild, so no
      ApplyPayment interleaves with it.
    - All or nothing: the rebuild runs in the caller's transaction; the
      first failing payment raises ReprocessingError and the caller rolls
      everything back.
    - Replay order: payment_date ascending, then payment seq.
    - Rows without a payment id (charge mirrors, acquisition costs,
      authority fine costs) are never touched.
    - Idempotent: running it twice yields the same final state.
"""

import time
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from fleet_kernel.domain.dtos import ReprocessResult
from fleet_kernel.domain.values import (
    ZERO,
    FineStatus,
    LedgerEntryType,
    PaymentStatus,
    PnlSide,
    to_money,
)
from fleet_kernel.exceptions import FleetLedgerError, ReprocessingError
from fleet_kernel.logging_config import get_logger
from fleet_kernel.models.charge import Charge
from fleet_kernel.models.fine import Fine
from fleet_kernel.models.ledger import LedgerEntry
from fleet_kernel.models.payment import Payment, PaymentApplication
from fleet_kernel.models.pnl import PnlEntry
from fleet_kernel.services.allocation_service import AllocationService
from fleet_kernel.services.base import BaseService
from fleet_kernel.services.ledger_lock import LedgerLockService

logger = get_logger("services.reprocessor")

_BULK = {"synchronize_session": False}


class Reprocessor(BaseService):
    """
    Full replay of all payments.

    Non-goals:
        - Does NOT commit and does NOT write the maintenance run record;
          the gateway does both.
    """

    def __init__(self, session, clock=None, *, allocation: AllocationService | None = None, places: int = 2):
        super().__init__(session, clock)
        self._places = places
        self._allocation = allocation or AllocationService(session, self.clock, places=places)
        self._locks = LedgerLockService(session, self.clock)

    def reapply_all_payments(self, holder: str = "reprocessor") -> ReprocessResult:
        t0 = time.monotonic()
        with self._locks.hold_exclusive(holder=holder):
            self._reset()
            payments_processed, customers, total_applied, revenue = self._replay()

        duration = round(time.monotonic() - t0, 3)
        result = ReprocessResult(
            payments_processed=payments_processed,
            customers_affected=len(customers),
            total_credit_applied=to_money(total_applied, self._places),
            revenue_recalculated=to_money(revenue, self._places),
            duration_seconds=duration,
        )
        logger.info(
            "reprocess_completed",
            extra={
                "payments_processed": result.payments_processed,
                "customers_affected": result.customers_affected,
                "total_credit_applied": str(result.total_credit_applied),
                "revenue_recalculated": str(result.revenue_recalculated),
                "duration_seconds": result.duration_seconds,
            },
        )
        return result

    def _reset(self) -> None:
        s = self.session
        applications = s.execute(delete(PaymentApplication).execution_options(**_BULK)).rowcount
        ledger_rows = s.execute(
            delete(LedgerEntry)
            .where(LedgerEntry.payment_id.is_not(None))
            .execution_options(**_BULK)
        ).rowcount
        pnl_rows = s.execute(
            delete(PnlEntry)
            .where(PnlEntry.payment_id.is_not(None))
            .execution_options(**_BULK)
        ).rowcount

        s.execute(
            update(Charge)
            .values(remaining_amount=Charge.original_amount)
            .execution_options(**_BULK)
        )
        s.execute(
            update(LedgerEntry)
            .where(LedgerEntry.type == LedgerEntryType.CHARGE.value)
            .values(remaining_amount=LedgerEntry.amount)
            .execution_options(**_BULK)
        )
        s.execute(
            update(Payment)
            .values(status=PaymentStatus.PENDING.value, processed_at=None)
            .execution_options(**_BULK)
        )
        s.execute(
            update(Fine)
            .where(
                Fine.status == FineStatus.PAID.value,
                Fine.id.in_(select(Charge.fine_id).where(Charge.fine_id.is_not(None))),
            )
            .values(status=FineStatus.CHARGED.value, resolved_at=None)
            .execution_options(**_BULK)
        )
        s.expire_all()

        logger.info(
            "reprocess_reset",
            extra={
                "applications_deleted": applications,
                "ledger_rows_deleted": ledger_rows,
                "pnl_rows_deleted": pnl_rows,
            },
        )

    def _replay(self) -> tuple[int, set, Decimal, Decimal]:
        rows = self.session.execute(
            select(Payment.id, Payment.customer_id).order_by(Payment.payment_date, Payment.seq)
        ).all()

        customers = set()
        total_applied = ZERO
        revenue = ZERO
        for payment_id, customer_id in rows:
            try:
                result = self._allocation.apply_payment(payment_id, acquire_lock=False)
            except (FleetLedgerError, SQLAlchemyError) as exc:
                logger.error(
                    "reprocess_payment_failed",
                    extra={"failed_payment_id": str(payment_id)},
                    exc_info=True,
                )
                raise ReprocessingError(payment_id, exc) from exc

            customers.add(customer_id)
            total_applied += sum((line.amount_applied for line in result.applied), ZERO)
            revenue += sum(
                (line.amount for line in result.pnl if line.side == PnlSide.REVENUE.value),
                ZERO,
            )

        return len(rows), customers, total_applied, revenue
