"""
LedgerPoster -- writes signed LedgerEntry rows.

Responsibility:
    The only writer of ``ledger_entries``.  Posts the mirror row for every
    charge, the payment rows for settled portions, unapplied credit and
    direct-revenue payments, and keeps mirror remaining amounts in lockstep
    with their charges.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by ChargeService, AllocationService and Reprocessor.

Invariants enforced:
    - Sign convention: Charge rows positive, Payment rows negative.
    - Payment rows always carry ``payment_id`` and a ``line_key`` so the
      UNIQUE(payment_id, category, line_key) constraint keys them.
    - Amounts are rounded to the ledger's minor unit before insert.

Failure modes:
    - IntegrityError on a duplicate payment posting (propagated to the
      allocation service, which treats it as an idempotent replay).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select

from fleet_kernel.domain.values import LedgerCategory, LedgerEntryType, to_money
from fleet_kernel.logging_config import get_logger
from fleet_kernel.models.charge import Charge
from fleet_kernel.models.ledger import (
    LINE_KEY_CHARGE,
    LINE_KEY_REVENUE,
    LINE_KEY_UNAPPLIED,
    LedgerEntry,
    charge_reference,
    settled_line_key,
)
from fleet_kernel.models.payment import Payment
from fleet_kernel.services.base import BaseService

logger = get_logger("services.ledger_poster")


class LedgerPoster(BaseService):
    """Writes and maintains ledger rows.  Flush-only."""

    def __init__(self, session, clock=None, places: int = 2):
        super().__init__(session, clock)
        self._places = places

    def _money(self, value) -> Decimal:
        return to_money(value, self._places)

    # -- charge mirrors -------------------------------------------------

    def post_charge_mirror(self, charge: Charge) -> LedgerEntry:
        """Post the positive Charge row that mirrors ``charge``."""
        entry = LedgerEntry(
            customer_id=charge.customer_id,
            vehicle_id=charge.vehicle_id,
            rental_id=charge.rental_id,
            charge_id=charge.id,
            entry_date=charge.due_date,
            type=LedgerEntryType.CHARGE.value,
            category=charge.category,
            amount=self._money(charge.original_amount),
            due_date=charge.due_date,
            remaining_amount=self._money(charge.remaining_amount),
            line_key=LINE_KEY_CHARGE,
            reference=charge_reference(charge.id),
        )
        self.session.add(entry)
        self.session.flush()
        logger.debug(
            "ledger_charge_posted",
            extra={
                "charge_id": str(charge.id),
                "amount": str(entry.amount),
                "due_date": charge.due_date,
            },
        )
        return entry

    def get_charge_mirror(self, charge_id: UUID) -> LedgerEntry | None:
        return self.session.execute(
            select(LedgerEntry).where(LedgerEntry.reference == charge_reference(charge_id))
        ).scalar_one_or_none()

    def sync_charge_mirror(self, charge: Charge) -> None:
        """Copy the charge's remaining amount onto its mirror row."""
        mirror = self.get_charge_mirror(charge.id)
        if mirror is not None:
            mirror.remaining_amount = self._money(charge.remaining_amount)

    def delete_charge_mirror(self, charge_id: UUID) -> int:
        result = self.session.execute(
            delete(LedgerEntry)
            .where(LedgerEntry.reference == charge_reference(charge_id))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    # -- payment rows ---------------------------------------------------

    def post_settlement(self, payment: Payment, charge: Charge, amount: Decimal) -> LedgerEntry:
        """Post the negative row for the part of ``payment`` applied to ``charge``."""
        return self._post_payment_row(
            payment,
            category=charge.category,
            amount=amount,
            line_key=settled_line_key(charge.id),
            due_date=charge.due_date,
            charge_id=charge.id,
            rental_id=charge.rental_id or payment.rental_id,
            vehicle_id=charge.vehicle_id or payment.vehicle_id,
        )

    def post_unapplied(self, payment: Payment, amount: Decimal) -> LedgerEntry:
        """Post the residual of a rental payment that no open charge absorbed."""
        return self._post_payment_row(
            payment,
            category=LedgerCategory.RENTAL.value,
            amount=amount,
            line_key=LINE_KEY_UNAPPLIED,
        )

    def post_direct_revenue(self, payment: Payment, category: str) -> LedgerEntry:
        """Post an InitialFee/Other payment in full under ``category``."""
        return self._post_payment_row(
            payment,
            category=category,
            amount=payment.amount,
            line_key=LINE_KEY_REVENUE,
        )

    def _post_payment_row(
        self,
        payment: Payment,
        *,
        category: str,
        amount: Decimal,
        line_key: str,
        due_date=None,
        charge_id: UUID | None = None,
        rental_id: UUID | None = None,
        vehicle_id: UUID | None = None,
    ) -> LedgerEntry:
        entry = LedgerEntry(
            customer_id=payment.customer_id,
            vehicle_id=vehicle_id or payment.vehicle_id,
            rental_id=rental_id or payment.rental_id,
            charge_id=charge_id,
            payment_id=payment.id,
            entry_date=payment.payment_date,
            type=LedgerEntryType.PAYMENT.value,
            category=category,
            amount=-self._money(amount),
            due_date=due_date,
            remaining_amount=None,
            line_key=line_key,
        )
        self.session.add(entry)
        self.session.flush()
        logger.debug(
            "ledger_payment_posted",
            extra={
                "payment_id": str(payment.id),
                "category": category,
                "line_key": line_key,
                "amount": str(entry.amount),
            },
        )
        return entry
