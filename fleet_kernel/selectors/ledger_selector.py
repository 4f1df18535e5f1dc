"""
Module: fleet_kernel.selectors.ledger_selector
Responsibility: Customer balance and statement queries.  The net position is
    a derived view over ledger entries -- no balance is stored anywhere.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.  MUST NOT import from services/ or outer
    layers.

Invariants enforced:
    - Entries belonging to InitialFee payments are company revenue, never
      customer debt, and are excluded from every balance and statement.
    - Rental Charge entries due strictly after today (injected clock) are
      not yet owed and are excluded.
    - Sign convention: positive = customer owes (In Debt), zero = Settled,
      negative = customer is in credit.

Failure modes:
    - CustomerNotFoundError for an unknown customer id.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, or_, select

from fleet_kernel.domain.dtos import BalanceSummary, StatementLine
from fleet_kernel.domain.values import (
    ZERO,
    BalanceStatus,
    LedgerCategory,
    LedgerEntryType,
    PaymentType,
    to_money,
)
from fleet_kernel.exceptions import CustomerNotFoundError
from fleet_kernel.models.fleet import Vehicle
from fleet_kernel.models.ledger import LINE_KEY_UNAPPLIED, LedgerEntry
from fleet_kernel.models.party import Customer
from fleet_kernel.models.payment import Payment
from fleet_kernel.selectors.base import BaseSelector


def classify_balance(balance: Decimal) -> BalanceStatus:
    """Label a signed net position."""
    if balance > ZERO:
        return BalanceStatus.IN_DEBT
    if balance < ZERO:
        return BalanceStatus.IN_CREDIT
    return BalanceStatus.SETTLED


class LedgerSelector(BaseSelector):
    """
    Selector for customer balances -- the authoritative net position.

    Contract:
        Every figure is summed from LedgerEntry rows at query time, joined
        to Payment only to recognise InitialFee postings.
    """

    def _counted(self, customer_id: UUID, as_of: date | None = None):
        """Conditions selecting the rows that count toward the balance."""
        today = as_of or self.clock.today()
        return (
            LedgerEntry.customer_id == customer_id,
            or_(
                Payment.id.is_(None),
                Payment.payment_type != PaymentType.INITIAL_FEE.value,
            ),
            or_(
                LedgerEntry.type != LedgerEntryType.CHARGE.value,
                LedgerEntry.category != LedgerCategory.RENTAL.value,
                LedgerEntry.due_date <= today,
            ),
        )

    def _require_customer(self, customer_id: UUID) -> None:
        if self.session.get(Customer, customer_id) is None:
            raise CustomerNotFoundError(customer_id)

    def get_customer_balance(self, customer_id: UUID, as_of: date | None = None) -> Decimal:
        """
        Signed net position of a customer.

        Args:
            customer_id: Customer to total.
            as_of: Date deciding which rental charges are due; defaults to
                the clock's today.
        """
        self._require_customer(customer_id)
        total = self.session.execute(
            select(func.coalesce(func.sum(LedgerEntry.amount), 0))
            .select_from(LedgerEntry)
            .outerjoin(Payment, LedgerEntry.payment_id == Payment.id)
            .where(*self._counted(customer_id, as_of))
        ).scalar_one()
        return to_money(total)

    # Same value; the name used at the gateway boundary.
    get_customer_net_position = get_customer_balance

    def get_balance_with_status(self, customer_id: UUID, as_of: date | None = None) -> BalanceSummary:
        self._require_customer(customer_id)
        charges, payments = self.session.execute(
            select(
                func.coalesce(
                    func.sum(case((LedgerEntry.amount > 0, LedgerEntry.amount), else_=0)), 0
                ),
                func.coalesce(
                    func.sum(case((LedgerEntry.amount < 0, -LedgerEntry.amount), else_=0)), 0
                ),
            )
            .select_from(LedgerEntry)
            .outerjoin(Payment, LedgerEntry.payment_id == Payment.id)
            .where(*self._counted(customer_id, as_of))
        ).one()
        total_charges = to_money(charges)
        total_payments = to_money(payments)
        balance = total_charges - total_payments
        return BalanceSummary(
            customer_id=customer_id,
            balance=balance,
            status=classify_balance(balance).value,
            total_charges=total_charges,
            total_payments=total_payments,
        )

    def get_customer_credit(self, customer_id: UUID) -> Decimal:
        """Unapplied rental-payment credit held for the customer (>= 0)."""
        self._require_customer(customer_id)
        return self._unapplied(LedgerEntry.customer_id == customer_id)

    def get_rental_credit(self, rental_id: UUID) -> Decimal:
        """Unapplied credit from payments made against ``rental_id``."""
        return self._unapplied(LedgerEntry.rental_id == rental_id)

    def _unapplied(self, condition) -> Decimal:
        total = self.session.execute(
            select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
                condition,
                LedgerEntry.line_key == LINE_KEY_UNAPPLIED,
            )
        ).scalar_one()
        return -to_money(total)

    def get_customer_statement(
        self,
        customer_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[StatementLine]:
        """
        Ledger lines with a running balance.

        The first line's running balance starts from everything counted
        before ``from_date``; the last line's equals the balance as of
        ``to_date`` (or today).
        """
        self._require_customer(customer_id)
        conditions = list(self._counted(customer_id, to_date))

        running = ZERO
        if from_date is not None:
            opening = self.session.execute(
                select(func.coalesce(func.sum(LedgerEntry.amount), 0))
                .select_from(LedgerEntry)
                .outerjoin(Payment, LedgerEntry.payment_id == Payment.id)
                .where(*conditions, LedgerEntry.entry_date < from_date)
            ).scalar_one()
            running = to_money(opening)
            conditions.append(LedgerEntry.entry_date >= from_date)
        if to_date is not None:
            conditions.append(LedgerEntry.entry_date <= to_date)

        rows = self.session.execute(
            select(LedgerEntry, Vehicle.reg)
            .outerjoin(Payment, LedgerEntry.payment_id == Payment.id)
            .outerjoin(Vehicle, LedgerEntry.vehicle_id == Vehicle.id)
            .where(*conditions)
            .order_by(
                LedgerEntry.entry_date,
                # charges before the payments dated the same day
                case((LedgerEntry.type == LedgerEntryType.CHARGE.value, 0), else_=1),
                LedgerEntry.created_at,
                LedgerEntry.id,
            )
        ).all()

        lines: list[StatementLine] = []
        for entry, reg in rows:
            amount = to_money(entry.amount)
            running += amount
            lines.append(
                StatementLine(
                    entry_id=entry.id,
                    transaction_date=entry.entry_date,
                    entry_type=entry.type,
                    category=entry.category,
                    description=_describe(entry),
                    debit=amount if amount > ZERO else ZERO,
                    credit=-amount if amount < ZERO else ZERO,
                    running_balance=running,
                    rental_id=entry.rental_id,
                    vehicle_reg=reg,
                )
            )
        return lines


def _describe(entry: LedgerEntry) -> str:
    if entry.type == LedgerEntryType.CHARGE.value:
        return f"{entry.category} charge due {entry.due_date.isoformat()}"
    if entry.line_key == LINE_KEY_UNAPPLIED:
        return "Payment held as credit"
    if entry.due_date is not None:
        return f"Payment applied to {entry.category} due {entry.due_date.isoformat()}"
    return f"{entry.category} payment"
