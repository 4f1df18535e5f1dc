"""
LedgerLockService -- exclusion between payment processing and maintenance.

Responsibility:
    Guards the ledger while the maintenance reprocessor rebuilds it.  Payment
    processing takes the ``ledger`` lock row in shared mode without waiting;
    the reprocessor holds it exclusively for the whole rebuild.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Used by AllocationService (shared) and Reprocessor (exclusive).

Invariants enforced:
    - While a rebuild is running, ApplyPayment fails fast with
      MaintenanceInProgressError instead of interleaving with the rebuild.
    - At most one rebuild runs at a time; a second request is rejected.

Failure modes:
    - MaintenanceInProgressError when the process-local maintenance flag is
      set, or when ``FOR SHARE NOWAIT`` cannot take the row (PostgreSQL).

Two layers are used because SQLite has no row locks: the process-local
flag covers threads in one process, the lock row covers other processes on
PostgreSQL.  On SQLite, ``BEGIN IMMEDIATE`` serializes the writers anyway.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from fleet_kernel.domain.clock import Clock, SystemClock
from fleet_kernel.exceptions import MaintenanceInProgressError
from fleet_kernel.logging_config import get_logger
from fleet_kernel.models.maintenance import LedgerLock

logger = get_logger("services.ledger_lock")

LEDGER_LOCK = "ledger"

_maintenance_active = threading.Event()
_maintenance_guard = threading.Lock()


def maintenance_in_progress() -> bool:
    """True while a rebuild holds the ledger in this process."""
    return _maintenance_active.is_set()


class LedgerLockService:
    """
    Shared/exclusive access to the ledger lock row.

    Non-goals:
        - Does NOT commit; the row lock lives as long as the caller's
          transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def ensure_lock_row(self, name: str = LEDGER_LOCK) -> LedgerLock:
        """Return the named lock row, creating it on first use."""
        row = self._session.execute(
            select(LedgerLock).where(LedgerLock.name == name)
        ).scalar_one_or_none()
        if row is not None:
            return row

        savepoint = self._session.begin_nested()
        try:
            row = LedgerLock(name=name)
            self._session.add(row)
            self._session.flush()
            savepoint.commit()
            logger.debug("ledger_lock_row_created", extra={"lock_name": name})
            return row
        except IntegrityError:
            savepoint.rollback()
            return self._session.execute(
                select(LedgerLock).where(LedgerLock.name == name)
            ).scalar_one()

    def acquire_shared(self, name: str = LEDGER_LOCK) -> None:
        """
        Take the lock row in shared mode without waiting.

        Raises:
            MaintenanceInProgressError: A rebuild holds the lock.
        """
        if _maintenance_active.is_set():
            logger.info("ledger_lock_rejected", extra={"lock_name": name, "mode": "shared"})
            raise MaintenanceInProgressError(name)

        self.ensure_lock_row(name)
        try:
            self._session.execute(
                select(LedgerLock.id)
                .where(LedgerLock.name == name)
                .with_for_update(read=True, nowait=True)
            ).one()
        except OperationalError as exc:
            logger.info("ledger_lock_rejected", extra={"lock_name": name, "mode": "shared"})
            raise MaintenanceInProgressError(name) from exc

    @contextmanager
    def hold_exclusive(self, holder: str = "reprocessor", name: str = LEDGER_LOCK) -> Iterator[LedgerLock]:
        """
        Hold the lock exclusively for the duration of the block.

        The process-local flag is released on exit; the row lock is released
        when the caller's transaction ends.

        Raises:
            MaintenanceInProgressError: Another rebuild is already running.
        """
        with _maintenance_guard:
            if _maintenance_active.is_set():
                logger.warning(
                    "ledger_lock_rejected",
                    extra={"lock_name": name, "mode": "exclusive"},
                )
                raise MaintenanceInProgressError(name)
            _maintenance_active.set()

        try:
            self.ensure_lock_row(name)
            row = self._session.execute(
                select(LedgerLock)
                .where(LedgerLock.name == name)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one()
            row.holder = holder
            row.acquired_at = self._clock.now()
            self._session.flush()
            logger.info("ledger_lock_acquired", extra={"lock_name": name, "holder": holder})
            yield row
        finally:
            _maintenance_active.clear()
            logger.info("ledger_lock_released", extra={"lock_name": name, "holder": holder})
