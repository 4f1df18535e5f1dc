"""
Concurrency tests for payment application through the gateway.

Every thread goes through LedgerGateway, so each one runs in its own
session and transaction.  On SQLite the writers serialize on BEGIN
IMMEDIATE; on PostgreSQL the payment row lock and the unique posting keys
do the work.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from fleet_kernel.db.engine import READ_ONLY_OPTION, is_postgres, read_scope, session_scope
from fleet_kernel.exceptions import CustomerNotFoundError, MaintenanceInProgressError
from fleet_kernel.models.charge import Charge
from fleet_kernel.models.ledger import LedgerEntry
from fleet_kernel.models.maintenance import LedgerLock
from fleet_kernel.models.party import Customer
from fleet_kernel.models.payment import Payment, PaymentApplication
from fleet_kernel.models.pnl import PnlEntry
from fleet_kernel.services.ledger_lock import LedgerLockService

THREADS = 6


@pytest.fixture
def committed_rental(session, create_rental, charge_service):
    rental = create_rental()
    charge_service.create_charge(rental.id, date(2024, 1, 1), "1000")
    charge_service.create_charge(rental.id, date(2024, 2, 1), "1000")
    session.commit()
    return rental


def _run_concurrently(fn, args_list):
    barrier = threading.Barrier(len(args_list))

    def _call(args):
        barrier.wait()
        return fn(*args)

    with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
        return list(pool.map(_call, args_list))


@pytest.mark.slow_locks
class TestSamePaymentRace:
    def test_applied_exactly_once(self, gateway, committed_rental):
        recorded = gateway.record_payment(
            committed_rental.customer_id, "1500", date(2024, 1, 5),
            rental_id=committed_rental.id,
        )
        payment_id = recorded["payment_id"]

        results = _run_concurrently(gateway.apply_payment, [(payment_id,)] * THREADS)

        assert all(r["ok"] for r in results)
        assert sum(1 for r in results if not r["already_processed"]) == 1
        assert {r["allocated"] for r in results} == {Decimal("1500.00")}
        with session_scope() as s:
            assert s.execute(select(func.count(PaymentApplication.id))).scalar_one() == 2
            assert s.execute(
                select(func.count(LedgerEntry.id)).where(LedgerEntry.payment_id.is_not(None))
            ).scalar_one() == 2
            assert s.execute(select(func.count(PnlEntry.id))).scalar_one() == 1
            remaining = s.execute(select(func.sum(Charge.remaining_amount))).scalar_one()
            assert Decimal(remaining) == Decimal("500")


@pytest.mark.slow_locks
class TestCompetingPayments:
    def test_no_charge_over_allocated(self, gateway, committed_rental):
        payment_ids = [
            gateway.record_payment(
                committed_rental.customer_id, "700", date(2024, 1, 5),
                rental_id=committed_rental.id,
            )["payment_id"]
            for _ in range(4)
        ]

        results = _run_concurrently(gateway.apply_payment, [(pid,) for pid in payment_ids])

        assert all(r["ok"] and not r["already_processed"] for r in results)
        assert sum((r["allocated"] for r in results), Decimal("0")) == Decimal("2000.00")
        assert sum((r["remaining"] for r in results), Decimal("0")) == Decimal("800.00")
        with session_scope() as s:
            for charge in s.execute(select(Charge)).scalars():
                applied = s.execute(
                    select(func.coalesce(func.sum(PaymentApplication.amount_applied), 0))
                    .where(PaymentApplication.charge_id == charge.id)
                ).scalar_one()
                assert Decimal(applied) == charge.original_amount
                assert charge.remaining_amount == Decimal("0")

    def test_sequence_numbers_unique(self, gateway, committed_rental):
        args = [
            (committed_rental.customer_id, "10", date(2024, 1, 5))
            for _ in range(THREADS)
        ]

        results = _run_concurrently(gateway.record_payment, args)

        seqs = [r["seq"] for r in results]
        assert all(r["ok"] for r in results)
        assert len(set(seqs)) == THREADS
        with session_scope() as s:
            assert s.execute(select(func.count(Payment.id))).scalar_one() == THREADS


class TestMaintenanceLock:
    def test_apply_rejected_during_rebuild(self, session, clock, gateway, committed_rental):
        payment_id = gateway.record_payment(
            committed_rental.customer_id, "100", date(2024, 1, 5)
        )["payment_id"]

        with LedgerLockService(session, clock).hold_exclusive(holder="test-rebuild"):
            response = gateway.apply_payment(payment_id)
        session.rollback()

        assert response["ok"] is False
        assert response["code"] == "MAINTENANCE_IN_PROGRESS"
        assert gateway.apply_payment(payment_id)["ok"] is True

    def test_rejection_writes_nothing(self, session, clock, gateway, committed_rental):
        payment_id = gateway.record_payment(
            committed_rental.customer_id, "100", date(2024, 1, 5)
        )["payment_id"]

        with LedgerLockService(session, clock).hold_exclusive():
            gateway.apply_payment(payment_id)
        session.rollback()

        with session_scope() as s:
            assert s.execute(select(func.count(PaymentApplication.id))).scalar_one() == 0
            assert s.execute(select(Payment.status)).scalar_one() == "Pending"

    @pytest.mark.postgres
    def test_row_lock_blocks_shared_acquire(self, clock, session_factory):
        """Another process holding the row FOR UPDATE: FOR SHARE NOWAIT fails fast."""
        if not is_postgres():
            pytest.skip("row-level locks need PostgreSQL")

        with session_scope() as s:
            LedgerLockService(s, clock).ensure_lock_row()

        holder = session_factory()
        contender = session_factory()
        try:
            holder.execute(
                select(LedgerLock).where(LedgerLock.name == "ledger").with_for_update()
            ).scalar_one()

            with pytest.raises(MaintenanceInProgressError):
                LedgerLockService(contender, clock).acquire_shared()
        finally:
            contender.rollback()
            holder.rollback()
            contender.close()
            holder.close()


class TestReadsDuringWrites:
    def test_read_not_blocked_by_open_writer(self, session, gateway, create_customer, committed_rental):
        before = gateway.get_customer_net_position(committed_rental.customer_id)
        pending = create_customer(name="Uncommitted Driver")  # writer holds its transaction

        during = gateway.get_customer_net_position(committed_rental.customer_id)
        summary = gateway.get_customer_balance_with_status(committed_rental.customer_id)
        with pytest.raises(CustomerNotFoundError):
            gateway.get_customer_net_position(pending.id)
        session.rollback()

        assert during == before
        assert summary["balance"] == before

    def test_read_scope_never_commits(self, session_factory):
        with read_scope(session_factory) as s:
            assert s.connection().get_execution_options()[READ_ONLY_OPTION] is True
            s.add(Customer(name="Discarded"))
            s.flush()

        with session_scope() as s:
            assert s.execute(select(func.count(Customer.id))).scalar_one() == 0
