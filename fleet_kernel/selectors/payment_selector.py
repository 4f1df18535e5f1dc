"""
Module: fleet_kernel.selectors.payment_selector
Responsibility: Read-only payment queries.  A payment's remaining
    (unapplied) amount is derived from its applications, never stored.
Architecture position: Kernel > Selectors.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from fleet_kernel.domain.dtos import ApplicationLine, PaymentInfo
from fleet_kernel.domain.values import ZERO, PaymentStatus, PaymentType, to_money
from fleet_kernel.exceptions import PaymentNotFoundError
from fleet_kernel.models.payment import Payment, PaymentApplication
from fleet_kernel.selectors.base import BaseSelector


class PaymentSelector(BaseSelector):
    """Payment reads."""

    def _applied_total(self, payment_id: UUID) -> Decimal:
        total = self.session.execute(
            select(func.coalesce(func.sum(PaymentApplication.amount_applied), 0)).where(
                PaymentApplication.payment_id == payment_id
            )
        ).scalar_one()
        return to_money(total)

    def _info(self, payment: Payment) -> PaymentInfo:
        amount = to_money(payment.amount)
        direct_revenue = payment.payment_type != PaymentType.RENTAL.value
        if direct_revenue and payment.status != PaymentStatus.PENDING.value:
            applied = amount
        else:
            applied = self._applied_total(payment.id)
        return PaymentInfo(
            payment_id=payment.id,
            seq=payment.seq,
            customer_id=payment.customer_id,
            amount=amount,
            payment_date=payment.payment_date,
            payment_type=payment.payment_type,
            status=payment.status,
            applied=applied,
            remaining=amount - applied,
            rental_id=payment.rental_id,
            vehicle_id=payment.vehicle_id,
        )

    def get(self, payment_id: UUID) -> PaymentInfo:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return self._info(payment)

    def get_payment_remaining(self, payment_id: UUID) -> Decimal:
        """``amount - applied``; zero for a processed InitialFee/Other payment."""
        return self.get(payment_id).remaining

    def list_for_customer(self, customer_id: UUID) -> list[PaymentInfo]:
        payments = self.session.execute(
            select(Payment)
            .where(Payment.customer_id == customer_id)
            .order_by(Payment.payment_date, Payment.seq)
        ).scalars()
        return [self._info(p) for p in payments]

    def applications_for(self, payment_id: UUID) -> list[ApplicationLine]:
        rows = self.session.execute(
            select(PaymentApplication)
            .where(PaymentApplication.payment_id == payment_id)
            .order_by(PaymentApplication.created_at, PaymentApplication.id)
        ).scalars()
        return [
            ApplicationLine(
                application_id=a.id,
                payment_id=a.payment_id,
                charge_id=a.charge_id,
                amount_applied=to_money(a.amount_applied),
            )
            for a in rows
        ]

    def unapplied_total(self) -> Decimal:
        """Sum of remaining amounts over all processed rental payments."""
        total = ZERO
        payments = self.session.execute(
            select(Payment).where(
                Payment.payment_type == PaymentType.RENTAL.value,
                Payment.status != PaymentStatus.PENDING.value,
            )
        ).scalars()
        for payment in payments:
            total += self._info(payment).remaining
        return total
