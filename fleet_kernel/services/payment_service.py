"""
PaymentService -- records incoming customer payments.

Responsibility:
    Validates and stores Payment rows in ``Pending`` status with a creation
    sequence number.  Allocation is a separate step (AllocationService).

Architecture position:
    Kernel > Services -- imperative shell.

Failure modes:
    - CustomerNotFoundError / RentalNotFoundError: unknown ids.
    - InvalidPaymentError: non-positive amount, unknown type, or a rental
      that belongs to another customer.
"""

from datetime import date
from uuid import UUID

from fleet_kernel.domain.values import ZERO, PaymentStatus, PaymentType, to_money
from fleet_kernel.exceptions import (
    CustomerNotFoundError,
    InvalidPaymentError,
    RentalNotFoundError,
)
from fleet_kernel.logging_config import get_logger
from fleet_kernel.models.fleet import Rental
from fleet_kernel.models.party import Customer
from fleet_kernel.models.payment import Payment
from fleet_kernel.services.base import BaseService
from fleet_kernel.services.sequence_service import SequenceService

logger = get_logger("services.payment")


def parse_payment_type(value) -> PaymentType:
    """Coerce a PaymentType or its stored value; unknown values raise."""
    if isinstance(value, PaymentType):
        return value
    try:
        return PaymentType(value)
    except ValueError as exc:
        raise InvalidPaymentError(f"unknown payment type {value!r}") from exc


class PaymentService(BaseService):
    """Payment intake.  Flush-only."""

    def __init__(self, session, clock=None, places: int = 2):
        super().__init__(session, clock)
        self._places = places
        self._sequences = SequenceService(session)

    def record_payment(
        self,
        customer_id: UUID,
        amount,
        payment_date: date,
        payment_type: PaymentType | str = PaymentType.RENTAL,
        method: str | None = None,
        rental_id: UUID | None = None,
        vehicle_id: UUID | None = None,
    ) -> Payment:
        """
        Store a new pending payment.

        When a rental is given and no vehicle, the rental's vehicle is used
        so P&L revenue lands on the right car.
        """
        ptype = parse_payment_type(payment_type)
        try:
            amount = to_money(amount, self._places)
        except ValueError as exc:
            raise InvalidPaymentError(str(exc)) from exc
        if amount <= ZERO:
            raise InvalidPaymentError(f"amount must be positive, got {amount}")

        if self.session.get(Customer, customer_id) is None:
            raise CustomerNotFoundError(customer_id)

        if rental_id is not None:
            rental = self.session.get(Rental, rental_id)
            if rental is None:
                raise RentalNotFoundError(rental_id)
            if rental.customer_id != customer_id:
                raise InvalidPaymentError(
                    f"rental {rental_id} does not belong to customer {customer_id}"
                )
            if vehicle_id is None:
                vehicle_id = rental.vehicle_id

        payment = Payment(
            seq=self._sequences.next_value(SequenceService.PAYMENT),
            customer_id=customer_id,
            rental_id=rental_id,
            vehicle_id=vehicle_id,
            amount=amount,
            payment_date=payment_date,
            payment_type=ptype.value,
            method=method,
            status=PaymentStatus.PENDING.value,
        )
        self.session.add(payment)
        self.session.flush()

        logger.info(
            "payment_recorded",
            extra={
                "payment_id": str(payment.id),
                "seq": payment.seq,
                "customer_id": str(customer_id),
                "payment_type": ptype.value,
                "amount": str(amount),
            },
        )
        return payment
