"""
AllocationService -- ApplyPayment: turns one payment into ledger state.

Responsibility:
    Applies a payment exactly once.  Rental payments are walked FIFO across
    the customer's open charges (pure engine in ``fleet_engines.allocation``)
    and produce PaymentApplications, negative ledger rows and per-category
    revenue.  InitialFee and Other payments are booked straight to revenue.

Architecture position:
    Kernel > Services -- imperative shell around the pure FIFO engine.
    Called by the gateway and by the Reprocessor during replay.

Invariants enforced:
    - Idempotency: the payment row is locked (``SELECT ... FOR UPDATE``)
      and existing ledger/P&L rows for the payment short-circuit to
      ALREADY_PROCESSED.  A racing writer that slips past the check collides
      on UNIQUE(payment_id, category, line_key) / UNIQUE(payment_id,
      category); the savepoint is rolled back and the winner's result is
      returned.
    - Conservation: sum(applications) + unapplied == payment.amount.
    - Charge bounds: 0 <= remaining_amount <= original_amount; the mirror
      ledger row moves in lockstep.
    - FIFO: open charges are consumed by (due_date, seq) ascending.

Failure modes:
    - PaymentNotFoundError / CustomerNotFoundError: unknown ids.
    - InvalidPaymentError: non-positive amount or unknown payment type.
    - MaintenanceInProgressError: a rebuild holds the ledger lock.
    - Any other database error propagates; the caller rolls back and no
      partial state remains.
"""

from collections.abc import Mapping
from decimal import Decimal
from uuid import UUID

from sqlalchemy import exists, or_, select
from sqlalchemy.exc import IntegrityError

from fleet_engines.allocation import AllocationTarget, FifoAllocator
from fleet_kernel.domain.dtos import (
    ApplicationLine,
    ApplyPaymentResult,
    ApplyStatus,
    LedgerLine,
    PnlLine,
)
from fleet_kernel.domain.values import (
    ZERO,
    FineStatus,
    LedgerCategory,
    PaymentStatus,
    PaymentType,
    to_money,
)
from fleet_kernel.exceptions import (
    CustomerNotFoundError,
    InvalidPaymentError,
    PaymentNotFoundError,
)
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_kernel.models.charge import Charge
from fleet_kernel.models.fine import Fine
from fleet_kernel.models.ledger import LedgerEntry
from fleet_kernel.models.party import Customer
from fleet_kernel.models.payment import Payment, PaymentApplication
from fleet_kernel.models.pnl import PnlEntry
from fleet_kernel.services.base import BaseService
from fleet_kernel.services.ledger_lock import LedgerLockService
from fleet_kernel.services.ledger_poster import LedgerPoster
from fleet_kernel.services.payment_service import parse_payment_type
from fleet_kernel.services.pnl_poster import PnlPoster

logger = get_logger("services.allocation")

DEFAULT_DIRECT_REVENUE_CATEGORIES: Mapping[str, str] = {
    PaymentType.INITIAL_FEE.value: LedgerCategory.INITIAL_FEES.value,
    PaymentType.OTHER.value: LedgerCategory.INITIAL_FEES.value,
}


def _ledger_line(entry: LedgerEntry) -> LedgerLine:
    return LedgerLine(
        entry_id=entry.id,
        customer_id=entry.customer_id,
        entry_type=entry.type,
        category=entry.category,
        amount=to_money(entry.amount),
        entry_date=entry.entry_date,
        due_date=entry.due_date,
        payment_id=entry.payment_id,
        charge_id=entry.charge_id,
        line_key=entry.line_key,
    )


def _pnl_line(entry: PnlEntry) -> PnlLine:
    return PnlLine(
        entry_id=entry.id,
        vehicle_id=entry.vehicle_id,
        side=entry.side,
        category=entry.category,
        amount=to_money(entry.amount),
        entry_date=entry.entry_date,
        payment_id=entry.payment_id,
        reference=entry.reference,
    )


def _application_line(app: PaymentApplication) -> ApplicationLine:
    return ApplicationLine(
        application_id=app.id,
        payment_id=app.payment_id,
        charge_id=app.charge_id,
        amount_applied=to_money(app.amount_applied),
    )


class AllocationService(BaseService):
    """
    ApplyPayment.

    Contract:
        ``apply_payment(payment_id)`` writes every row the payment implies in
        the caller's transaction and returns an ApplyPaymentResult.  Calling
        it again for the same payment writes nothing and returns the stored
        result with status ALREADY_PROCESSED.

    Non-goals:
        - Does NOT commit.
        - Does NOT apply a payment's unapplied credit to charges created
          later; the Reprocessor's replay does that.
    """

    def __init__(
        self,
        session,
        clock=None,
        *,
        places: int = 2,
        direct_revenue_categories: Mapping[str, str] | None = None,
        include_rental_less_charges: bool = True,
        allocator: FifoAllocator | None = None,
    ):
        super().__init__(session, clock)
        self._places = places
        self._direct_categories = dict(
            direct_revenue_categories or DEFAULT_DIRECT_REVENUE_CATEGORIES
        )
        self._include_rental_less = include_rental_less_charges
        self._allocator = allocator or FifoAllocator(places)
        self._locks = LedgerLockService(session, self.clock)
        self._ledger = LedgerPoster(session, self.clock, places)
        self._pnl = PnlPoster(session, self.clock, places)

    def apply_payment(self, payment_id: UUID, *, acquire_lock: bool = True) -> ApplyPaymentResult:
        """
        Apply ``payment_id`` exactly once.

        Args:
            payment_id: Payment to apply.
            acquire_lock: Take the shared ledger lock first.  The Reprocessor
                passes False because it already holds the lock exclusively.
        """
        with LogContext.bind(payment_id=str(payment_id)):
            if acquire_lock:
                self._locks.acquire_shared()

            payment = self._lock_payment(payment_id)
            ptype = self._validate(payment)

            if self._has_postings(payment.id):
                logger.info("payment_already_processed", extra={"payment_type": ptype.value})
                return self._existing_result(payment)

            savepoint = self.session.begin_nested()
            try:
                if ptype == PaymentType.RENTAL:
                    result = self._apply_rental(payment)
                else:
                    result = self._apply_direct_revenue(payment, ptype)
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                if not self._has_postings(payment.id):
                    raise
                logger.warning(
                    "payment_apply_conflict",
                    extra={"payment_id": str(payment.id)},
                )
                self.session.refresh(payment)
                return self._existing_result(payment)

            logger.info(
                "payment_applied",
                extra={
                    "payment_type": ptype.value,
                    "payment_status": result.payment_status,
                    "allocated": str(result.allocated),
                    "unallocated": str(result.unallocated),
                    "application_count": len(result.applied),
                },
            )
            return result

    # -- preconditions --------------------------------------------------

    def _lock_payment(self, payment_id: UUID) -> Payment:
        payment = self.session.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def _validate(self, payment: Payment) -> PaymentType:
        if self.session.get(Customer, payment.customer_id) is None:
            raise CustomerNotFoundError(payment.customer_id)
        try:
            ptype = parse_payment_type(payment.payment_type)
        except InvalidPaymentError as exc:
            raise InvalidPaymentError(exc.reason, payment.id) from exc
        if payment.amount is None or payment.amount <= ZERO:
            raise InvalidPaymentError(f"amount must be positive, got {payment.amount}", payment.id)
        return ptype

    def _has_postings(self, payment_id: UUID) -> bool:
        ledger_exists = self.session.execute(
            select(exists().where(LedgerEntry.payment_id == payment_id))
        ).scalar()
        if ledger_exists:
            return True
        return bool(
            self.session.execute(
                select(exists().where(PnlEntry.payment_id == payment_id))
            ).scalar()
        )

    # -- direct revenue -------------------------------------------------

    def _apply_direct_revenue(self, payment: Payment, ptype: PaymentType) -> ApplyPaymentResult:
        category = self._direct_categories.get(ptype.value, LedgerCategory.INITIAL_FEES.value)
        amount = to_money(payment.amount, self._places)

        ledger_entry = self._ledger.post_direct_revenue(payment, category)
        pnl_entry = self._pnl.post_payment_revenue(payment, category, amount)

        payment.status = PaymentStatus.APPLIED.value
        payment.processed_at = self.clock.now()
        self.session.flush()

        return ApplyPaymentResult(
            status=ApplyStatus.APPLIED,
            payment_id=payment.id,
            payment_status=payment.status,
            allocated=amount,
            unallocated=ZERO,
            ledger=(_ledger_line(ledger_entry),),
            pnl=(_pnl_line(pnl_entry),),
        )

    # -- rental FIFO ----------------------------------------------------

    def _open_charges(self, payment: Payment) -> list[Charge]:
        stmt = select(Charge).where(
            Charge.customer_id == payment.customer_id,
            Charge.remaining_amount > 0,
        )
        if payment.rental_id is not None:
            if self._include_rental_less:
                stmt = stmt.where(
                    or_(Charge.rental_id == payment.rental_id, Charge.rental_id.is_(None))
                )
            else:
                stmt = stmt.where(Charge.rental_id == payment.rental_id)
        stmt = (
            stmt.order_by(Charge.due_date, Charge.seq)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(self.session.execute(stmt).scalars())

    def _apply_rental(self, payment: Payment) -> ApplyPaymentResult:
        charges = self._open_charges(payment)
        by_id = {charge.id: charge for charge in charges}

        allocation = self._allocator.allocate(
            payment.amount,
            [
                AllocationTarget(
                    target_id=charge.id,
                    due_date=charge.due_date,
                    seq=charge.seq,
                    remaining=charge.remaining_amount,
                    category=charge.category,
                )
                for charge in charges
            ],
        )

        applications: list[PaymentApplication] = []
        ledger_entries: list[LedgerEntry] = []
        first_vehicle_by_category: dict[str, UUID | None] = {}

        for line in allocation.lines:
            charge = by_id[line.target_id]
            charge.remaining_amount = line.remaining_after

            application = PaymentApplication(
                payment_id=payment.id,
                charge_id=charge.id,
                amount_applied=line.applied,
            )
            self.session.add(application)
            applications.append(application)

            ledger_entries.append(self._ledger.post_settlement(payment, charge, line.applied))
            self._ledger.sync_charge_mirror(charge)
            first_vehicle_by_category.setdefault(charge.category, charge.vehicle_id)

            if charge.fine_id is not None and line.is_settled:
                self._mark_fine_paid(charge.fine_id)

        if allocation.unallocated > ZERO:
            ledger_entries.append(self._ledger.post_unapplied(payment, allocation.unallocated))

        pnl_entries = [
            self._pnl.post_payment_revenue(
                payment,
                category,
                total,
                vehicle_id=payment.vehicle_id or first_vehicle_by_category.get(category),
            )
            for category, total in allocation.allocated_by_category().items()
        ]

        payment.status = self._status_for(allocation.total_allocated, allocation.unallocated).value
        payment.processed_at = self.clock.now()
        self.session.flush()

        return ApplyPaymentResult(
            status=ApplyStatus.APPLIED,
            payment_id=payment.id,
            payment_status=payment.status,
            allocated=allocation.total_allocated,
            unallocated=allocation.unallocated,
            applied=tuple(_application_line(a) for a in applications),
            ledger=tuple(_ledger_line(e) for e in ledger_entries),
            pnl=tuple(_pnl_line(e) for e in pnl_entries),
        )

    @staticmethod
    def _status_for(allocated: Decimal, unallocated: Decimal) -> PaymentStatus:
        if unallocated == ZERO:
            return PaymentStatus.APPLIED
        if allocated > ZERO:
            return PaymentStatus.PARTIAL
        return PaymentStatus.CREDIT

    def _mark_fine_paid(self, fine_id: UUID) -> None:
        fine = self.session.get(Fine, fine_id)
        if fine is None or fine.status == FineStatus.PAID.value:
            return
        fine.status = FineStatus.PAID.value
        fine.resolved_at = self.clock.now()
        logger.info("fine_paid", extra={"fine_id": str(fine_id)})

    # -- idempotent replay ----------------------------------------------

    def _existing_result(self, payment: Payment) -> ApplyPaymentResult:
        applications = list(
            self.session.execute(
                select(PaymentApplication)
                .where(PaymentApplication.payment_id == payment.id)
                .order_by(PaymentApplication.created_at, PaymentApplication.id)
            ).scalars()
        )
        ledger_entries = list(
            self.session.execute(
                select(LedgerEntry)
                .where(LedgerEntry.payment_id == payment.id)
                .order_by(LedgerEntry.due_date, LedgerEntry.line_key)
            ).scalars()
        )
        pnl_entries = list(
            self.session.execute(
                select(PnlEntry)
                .where(PnlEntry.payment_id == payment.id)
                .order_by(PnlEntry.category)
            ).scalars()
        )

        amount = to_money(payment.amount, self._places)
        if payment.payment_type == PaymentType.RENTAL.value:
            allocated = to_money(
                sum((a.amount_applied for a in applications), ZERO), self._places
            )
        else:
            allocated = amount

        return ApplyPaymentResult(
            status=ApplyStatus.ALREADY_PROCESSED,
            payment_id=payment.id,
            payment_status=payment.status,
            allocated=allocated,
            unallocated=amount - allocated,
            applied=tuple(_application_line(a) for a in applications),
            ledger=tuple(_ledger_line(e) for e in ledger_entries),
            pnl=tuple(_pnl_line(e) for e in pnl_entries),
        )
