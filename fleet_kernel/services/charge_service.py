"""
ChargeService -- creates, schedules and removes charges.

Responsibility:
    Creates Charge rows (rental installments and fine charges) with a
    creation sequence number and their mirror ledger row.  Generates the
    monthly installment schedule of a rental.  Removes charges nothing has
    been applied to.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the gateway (CreateCharge), FineService and tests.

Invariants enforced:
    - amount > 0 and ``remaining_amount == original_amount`` at creation.
    - A charge with payment applications is never deleted.
    - Creating a charge posts no Payment-type ledger row and no P&L row.

Failure modes:
    - InvalidChargeError: non-positive amount, or a schedule window that
      ends before it starts.
    - RentalNotFoundError / ChargeNotFoundError: unknown ids.
    - ChargeHasApplicationsError: delete of a charge with applications.
"""

import calendar
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from fleet_kernel.domain.values import ZERO, ChargeCategory, to_money
from fleet_kernel.exceptions import (
    ChargeHasApplicationsError,
    ChargeNotFoundError,
    InvalidChargeError,
    RentalNotFoundError,
)
from fleet_kernel.logging_config import get_logger
from fleet_kernel.models.charge import Charge
from fleet_kernel.models.fine import Fine
from fleet_kernel.models.fleet import Rental
from fleet_kernel.models.payment import PaymentApplication
from fleet_kernel.services.base import BaseService
from fleet_kernel.services.ledger_poster import LedgerPoster
from fleet_kernel.services.sequence_service import SequenceService

logger = get_logger("services.charge")


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the last day of a shorter month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class ChargeService(BaseService):
    """
    Charge lifecycle.  Flush-only.

    Non-goals:
        - Does NOT allocate existing credit to a new charge; unapplied
          credit is picked up by the next full replay.
    """

    def __init__(self, session, clock=None, places: int = 2):
        super().__init__(session, clock)
        self._places = places
        self._sequences = SequenceService(session)
        self._ledger = LedgerPoster(session, self.clock, places)

    def create_charge(self, rental_id: UUID, due_date: date, amount) -> Charge:
        """
        Create a Rental charge against ``rental_id``.

        ``due_date`` may be past, present or future; the balance calculator
        decides whether it counts yet.
        """
        amount = self._positive_amount(amount)
        rental = self.session.get(Rental, rental_id)
        if rental is None:
            raise RentalNotFoundError(rental_id)

        return self._create(
            customer_id=rental.customer_id,
            vehicle_id=rental.vehicle_id,
            rental_id=rental.id,
            category=ChargeCategory.RENTAL,
            due_date=due_date,
            amount=amount,
        )

    def create_fine_charge(self, fine: Fine) -> Charge:
        """Charge a fine to its customer.  The charge has no rental."""
        return self._create(
            customer_id=fine.customer_id,
            vehicle_id=fine.vehicle_id,
            rental_id=None,
            category=ChargeCategory.FINES,
            due_date=fine.due_date,
            amount=self._positive_amount(fine.amount),
            fine_id=fine.id,
        )

    def generate_rental_charges(self, rental_id: UUID, through: date) -> list[Charge]:
        """
        Create the monthly installments of a rental due on or before ``through``.

        Installments fall on the rental's start day of month (clamped to
        month end) and stop at the rental's end date.  Due dates that already
        have a Rental charge are skipped, so the call is repeatable.
        """
        rental = self.session.get(Rental, rental_id)
        if rental is None:
            raise RentalNotFoundError(rental_id)

        last_day = through
        if rental.end_date is not None and rental.end_date < last_day:
            last_day = rental.end_date
        if last_day < rental.start_date:
            raise InvalidChargeError(
                f"schedule window ends {last_day} before rental start {rental.start_date}"
            )

        existing = set(
            self.session.execute(
                select(Charge.due_date).where(
                    Charge.rental_id == rental.id,
                    Charge.category == ChargeCategory.RENTAL.value,
                )
            ).scalars()
        )

        created: list[Charge] = []
        skipped = 0
        index = 0
        due = rental.start_date
        while due <= last_day:
            if due in existing:
                skipped += 1
            else:
                created.append(
                    self._create(
                        customer_id=rental.customer_id,
                        vehicle_id=rental.vehicle_id,
                        rental_id=rental.id,
                        category=ChargeCategory.RENTAL,
                        due_date=due,
                        amount=self._positive_amount(rental.monthly_amount),
                    )
                )
            index += 1
            due = add_months(rental.start_date, index)

        logger.info(
            "rental_charges_generated",
            extra={
                "rental_id": str(rental.id),
                "through": last_day,
                "created_count": len(created),
                "skipped": skipped,
            },
        )
        return created

    def delete_charge(self, charge_id: UUID) -> None:
        """Remove a charge and its mirror row; refused once money is applied to it."""
        charge = self.session.get(Charge, charge_id)
        if charge is None:
            raise ChargeNotFoundError(charge_id)

        application_count = self.session.execute(
            select(func.count(PaymentApplication.id)).where(
                PaymentApplication.charge_id == charge.id
            )
        ).scalar_one()
        if application_count:
            raise ChargeHasApplicationsError(charge.id, application_count)

        self._ledger.delete_charge_mirror(charge.id)
        self.session.delete(charge)
        self.session.flush()
        logger.info("charge_deleted", extra={"charge_id": str(charge_id)})

    def _positive_amount(self, amount) -> Decimal:
        try:
            amount = to_money(amount, self._places)
        except ValueError as exc:
            raise InvalidChargeError(str(exc)) from exc
        if amount <= ZERO:
            raise InvalidChargeError(f"amount must be positive, got {amount}")
        return amount

    def _create(
        self,
        *,
        customer_id: UUID,
        vehicle_id: UUID | None,
        rental_id: UUID | None,
        category: ChargeCategory,
        due_date: date,
        amount: Decimal,
        fine_id: UUID | None = None,
    ) -> Charge:
        charge = Charge(
            seq=self._sequences.next_value(SequenceService.CHARGE),
            customer_id=customer_id,
            vehicle_id=vehicle_id,
            rental_id=rental_id,
            fine_id=fine_id,
            category=category.value,
            due_date=due_date,
            original_amount=amount,
            remaining_amount=amount,
        )
        self.session.add(charge)
        self.session.flush()
        self._ledger.post_charge_mirror(charge)

        logger.info(
            "charge_created",
            extra={
                "charge_id": str(charge.id),
                "seq": charge.seq,
                "customer_id": str(customer_id),
                "category": charge.category,
                "due_date": due_date,
                "amount": str(amount),
            },
        )
        return charge
