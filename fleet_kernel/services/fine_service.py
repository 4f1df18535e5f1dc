"""
FineService -- fine lifecycle and authority payments.

Responsibility:
    Moves fines through Open -> Charged -> Paid (or Appealed / Waived).
    Charging a customer-liability fine creates a ``Fines`` charge that rental
    payments then settle FIFO alongside rental installments.  Paying the
    issuing authority posts a Cost/Fines P&L row.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - PAID and WAIVED are terminal.
    - Only Customer-liability fines with a customer can be charged.
    - A fine charge that money was applied to is never removed by a waive.

Failure modes:
    - FineNotFoundError: unknown fine id.
    - InvalidFineActionError: the fine's status or liability forbids the
      action.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from fleet_kernel.domain.values import (
    ZERO,
    FineLiability,
    FineStatus,
    PnlCategory,
    PnlSide,
    to_money,
)
from fleet_kernel.exceptions import (
    ChargeHasApplicationsError,
    FineNotFoundError,
    InvalidFineActionError,
)
from fleet_kernel.logging_config import get_logger
from fleet_kernel.models.charge import Charge
from fleet_kernel.models.fine import AuthorityPayment, Fine
from fleet_kernel.services.base import BaseService
from fleet_kernel.services.charge_service import ChargeService
from fleet_kernel.services.pnl_poster import PnlPoster, authority_reference

logger = get_logger("services.fine")

_TERMINAL = frozenset({FineStatus.PAID.value, FineStatus.WAIVED.value})


class FineService(BaseService):
    """Fine actions.  Flush-only."""

    def __init__(self, session, clock=None, places: int = 2):
        super().__init__(session, clock)
        self._places = places
        self._charges = ChargeService(session, self.clock, places)
        self._pnl = PnlPoster(session, self.clock, places)

    def _get(self, fine_id: UUID) -> Fine:
        fine = self.session.get(Fine, fine_id)
        if fine is None:
            raise FineNotFoundError(fine_id)
        return fine

    def _charge_for(self, fine: Fine) -> Charge | None:
        return self.session.execute(
            select(Charge).where(Charge.fine_id == fine.id)
        ).scalar_one_or_none()

    def charge_fine(self, fine_id: UUID) -> Charge:
        """Charge a customer-liability fine to the customer's account."""
        fine = self._get(fine_id)
        if fine.liability != FineLiability.CUSTOMER.value:
            raise InvalidFineActionError(fine.id, "charge", "fine is a business liability")
        if fine.customer_id is None:
            raise InvalidFineActionError(fine.id, "charge", "fine has no customer")
        if fine.status == FineStatus.CHARGED.value or fine.status in _TERMINAL:
            raise InvalidFineActionError(fine.id, "charge", f"fine is {fine.status}")

        charge = self._charges.create_fine_charge(fine)
        fine.status = FineStatus.CHARGED.value
        fine.charged_at = self.clock.now()
        self.session.flush()
        logger.info(
            "fine_charged",
            extra={"fine_id": str(fine.id), "charge_id": str(charge.id)},
        )
        return charge

    def waive_fine(self, fine_id: UUID) -> Fine:
        """
        Waive a fine.  An unpaid fine charge is removed with it; a charge that
        already received money blocks the waive.
        """
        fine = self._get(fine_id)
        if fine.status in _TERMINAL:
            raise InvalidFineActionError(fine.id, "waive", f"fine is {fine.status}")

        charge = self._charge_for(fine)
        if charge is not None:
            try:
                self._charges.delete_charge(charge.id)
            except ChargeHasApplicationsError as exc:
                raise InvalidFineActionError(
                    fine.id, "waive", "payments are already applied to its charge"
                ) from exc

        fine.status = FineStatus.WAIVED.value
        fine.waived_at = self.clock.now()
        fine.resolved_at = fine.waived_at
        self.session.flush()
        logger.info("fine_waived", extra={"fine_id": str(fine.id)})
        return fine

    def appeal_fine(self, fine_id: UUID) -> Fine:
        fine = self._get(fine_id)
        if fine.status not in (FineStatus.OPEN.value, FineStatus.CHARGED.value):
            raise InvalidFineActionError(fine.id, "appeal", f"fine is {fine.status}")
        fine.status = FineStatus.APPEALED.value
        self.session.flush()
        logger.info("fine_appealed", extra={"fine_id": str(fine.id)})
        return fine

    def record_authority_payment(
        self,
        fine_id: UUID,
        amount,
        payment_date: date,
        payment_method: str | None = None,
        notes: str | None = None,
    ) -> AuthorityPayment:
        """Record money paid to the issuing authority and book it as a cost."""
        fine = self._get(fine_id)
        amount = to_money(amount, self._places)
        if amount <= ZERO:
            raise InvalidFineActionError(
                fine.id, "pay authority for", f"amount must be positive, got {amount}"
            )

        authority_payment = AuthorityPayment(
            fine_id=fine.id,
            amount=amount,
            payment_date=payment_date,
            payment_method=payment_method,
            notes=notes,
        )
        self.session.add(authority_payment)
        self.session.flush()

        self._pnl.post_manual(
            side=PnlSide.COST,
            category=PnlCategory.FINES.value,
            amount=amount,
            entry_date=payment_date,
            reference=authority_reference(authority_payment.id),
            vehicle_id=fine.vehicle_id,
            customer_id=fine.customer_id,
            source_ref=f"fine:{fine.id}",
        )
        logger.info(
            "authority_payment_recorded",
            extra={"fine_id": str(fine.id), "amount": str(amount)},
        )
        return authority_payment
