"""
fleet_services.ledger_gateway -- RPC-style boundary of the fleet ledger.

Responsibility:
    The entry points the back office calls.  Each call runs in exactly one
    transaction that this module owns: commit on success, full rollback on
    any failure.  Typed kernel errors are turned into
    ``{"ok": False, "error": ..., "code": ...}`` responses; storage errors
    are wrapped in TransactionFailureError first.

Architecture position:
    Services -- orchestration over kernel services, selectors and config.
    The only layer that commits.

Usage:
    from fleet_services.ledger_gateway import LedgerGateway

    gateway = LedgerGateway()
    gateway.apply_payment(payment_id)
    gateway.reapply_all_payments(started_by="ops@fleet")
    gateway.get_customer_net_position(customer_id)
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fleet_config import LedgerConfig, get_active_config
from fleet_config.bridges import allocation_options
from fleet_kernel.db.engine import get_session_factory, read_scope
from fleet_kernel.domain.clock import Clock, SystemClock
from fleet_kernel.exceptions import (
    FleetLedgerError,
    TransactionFailureError,
    ValidationError,
)
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_kernel.selectors.charge_selector import to_charge_info
from fleet_kernel.selectors.ledger_selector import LedgerSelector
from fleet_kernel.services.allocation_service import AllocationService
from fleet_kernel.services.charge_service import ChargeService
from fleet_kernel.services.payment_service import PaymentService
from fleet_kernel.services.reprocessor import Reprocessor
from fleet_services.maintenance_recorder import MaintenanceRecorder

logger = get_logger("services.gateway")

REAPPLY_ALL_PAYMENTS = "reapply_all_payments"


def _as_uuid(value: UUID | str, what: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError(f"Malformed {what} id: {value!r}") from exc


def _error(exc: FleetLedgerError, **fields: Any) -> dict[str, Any]:
    return {"ok": False, "error": str(exc), "code": exc.code, **fields}


class LedgerGateway:
    """
    Transactional boundary over the kernel.

    Contract:
        Every public method either returns a response dict (mutations) or a
        value (reads).  Mutations never leave partial state behind.
    """

    def __init__(
        self,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
        session_factory: Callable[[], Session] | None = None,
    ):
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._session_factory = session_factory or get_session_factory()
        self._places = self._config.money.decimal_places
        self._recorder = MaintenanceRecorder(self._session_factory, self._clock)

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        """One unit of work: commit on success, roll back on any error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed", extra={"operation": operation})
        except FleetLedgerError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise TransactionFailureError(operation, f"{type(exc).__name__}: {exc}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _allocation(self, session: Session) -> AllocationService:
        return AllocationService(session, self._clock, **allocation_options(self._config))

    # -- mutations ------------------------------------------------------

    def apply_payment(self, payment_id: UUID | str) -> dict[str, Any]:
        """
        ApplyPayment over RPC.

        Returns:
            ``{"ok", "payment_id", "status", "allocated", "remaining",
            "already_processed"}`` or an error dict.
        """
        with LogContext.bind(correlation_id=str(uuid4()), payment_id=str(payment_id)):
            try:
                pid = _as_uuid(payment_id, "payment")
                with self._transaction("apply_payment") as session:
                    result = self._allocation(session).apply_payment(pid)
            except FleetLedgerError as exc:
                logger.warning("apply_payment_failed", exc_info=True)
                return _error(exc, payment_id=str(payment_id))

            return {
                "ok": True,
                "payment_id": str(result.payment_id),
                "status": result.payment_status,
                "allocated": result.allocated,
                "remaining": result.unallocated,
                "already_processed": not result.is_new,
            }

    def reapply_all_payments(self, started_by: str | None = None) -> dict[str, Any]:
        """
        ReapplyAllPayments over RPC.

        The MaintenanceRun record is committed separately from the rebuild,
        so a failed rebuild is rolled back while its failure stays recorded.
        """
        run_id = self._recorder.start(REAPPLY_ALL_PAYMENTS, started_by)
        with LogContext.bind(correlation_id=str(uuid4()), run_id=str(run_id)):
            try:
                with self._transaction(REAPPLY_ALL_PAYMENTS) as session:
                    reprocessor = Reprocessor(
                        session,
                        self._clock,
                        allocation=self._allocation(session),
                        places=self._places,
                    )
                    result = reprocessor.reapply_all_payments(holder=f"run:{run_id}")
                self._recorder.complete(run_id, result)
            except FleetLedgerError as exc:
                logger.error("reapply_all_payments_failed", exc_info=True)
                self._recorder.fail(run_id, exc)
                return _error(
                    exc,
                    run_id=str(run_id),
                    failed_payment_id=getattr(exc, "failed_payment_id", None),
                )
            except Exception as exc:
                # The run record must never be left in "running".
                logger.exception("reapply_all_payments_crashed")
                self._recorder.fail(run_id, exc)
                raise

            return {
                "ok": True,
                "run_id": str(run_id),
                "payments_processed": result.payments_processed,
                "customers_affected": result.customers_affected,
                "total_credit_applied": result.total_credit_applied,
                "revenue_recalculated": result.revenue_recalculated,
                "duration_seconds": result.duration_seconds,
            }

    def create_charge(self, rental_id: UUID | str, due_date: date, amount: Decimal | str) -> dict[str, Any]:
        """CreateCharge over RPC."""
        with LogContext.bind(correlation_id=str(uuid4())):
            try:
                rid = _as_uuid(rental_id, "rental")
                with self._transaction("create_charge") as session:
                    charge = ChargeService(session, self._clock, self._places).create_charge(
                        rid, due_date, amount
                    )
                    info = to_charge_info(charge)
            except FleetLedgerError as exc:
                logger.warning("create_charge_failed", exc_info=True)
                return _error(exc, rental_id=str(rental_id))

            return {
                "ok": True,
                "charge_id": str(info.charge_id),
                "seq": info.seq,
                "customer_id": str(info.customer_id),
                "rental_id": str(info.rental_id),
                "category": info.category,
                "due_date": info.due_date,
                "amount": info.original_amount,
                "remaining_amount": info.remaining_amount,
            }

    def record_payment(
        self,
        customer_id: UUID | str,
        amount: Decimal | str,
        payment_date: date,
        payment_type: str = "Rental",
        method: str | None = None,
        rental_id: UUID | str | None = None,
    ) -> dict[str, Any]:
        """Store a pending payment; apply it separately with ``apply_payment``."""
        with LogContext.bind(correlation_id=str(uuid4()), customer_id=str(customer_id)):
            try:
                cid = _as_uuid(customer_id, "customer")
                rid = _as_uuid(rental_id, "rental") if rental_id is not None else None
                with self._transaction("record_payment") as session:
                    payment = PaymentService(session, self._clock, self._places).record_payment(
                        cid,
                        amount,
                        payment_date,
                        payment_type=payment_type,
                        method=method,
                        rental_id=rid,
                    )
                    payment_id, seq = payment.id, payment.seq
            except FleetLedgerError as exc:
                logger.warning("record_payment_failed", exc_info=True)
                return _error(exc, customer_id=str(customer_id))

            return {"ok": True, "payment_id": str(payment_id), "seq": seq}

    # -- reads ----------------------------------------------------------

    @contextmanager
    def _read(self, operation: str) -> Iterator[LedgerSelector]:
        """Read-only unit: never commits and never takes the write lock."""
        try:
            with read_scope(self._session_factory) as session:
                yield LedgerSelector(session, self._clock)
        except SQLAlchemyError as exc:
            raise TransactionFailureError(operation, f"{type(exc).__name__}: {exc}") from exc

    def get_customer_net_position(self, customer_id: UUID | str) -> Decimal:
        """Signed net position.  Raises CustomerNotFoundError for unknown ids."""
        cid = _as_uuid(customer_id, "customer")
        with self._read("get_customer_net_position") as selector:
            return selector.get_customer_net_position(cid)

    def get_customer_balance_with_status(self, customer_id: UUID | str) -> dict[str, Any]:
        cid = _as_uuid(customer_id, "customer")
        with self._read("get_customer_balance_with_status") as selector:
            summary = selector.get_balance_with_status(cid)
        return {
            "customer_id": str(summary.customer_id),
            "balance": summary.balance,
            "status": summary.status,
            "total_charges": summary.total_charges,
            "total_payments": summary.total_payments,
        }

    def get_customer_statement(
        self,
        customer_id: UUID | str,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[dict[str, Any]]:
        cid = _as_uuid(customer_id, "customer")
        with self._read("get_customer_statement") as selector:
            lines = selector.get_customer_statement(cid, from_date, to_date)
        return [
            {
                "entry_id": str(line.entry_id),
                "transaction_date": line.transaction_date,
                "type": line.entry_type,
                "category": line.category,
                "description": line.description,
                "debit": line.debit,
                "credit": line.credit,
                "running_balance": line.running_balance,
                "rental_id": str(line.rental_id) if line.rental_id else None,
                "vehicle_reg": line.vehicle_reg,
            }
            for line in lines
        ]

    def maintenance_history(self, limit: int = 10) -> list[dict[str, Any]]:
        return self._recorder.recent_runs(limit)
