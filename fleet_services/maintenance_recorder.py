"""
fleet_services.maintenance_recorder -- audit rows for maintenance runs.

Responsibility:
    Writes one MaintenanceRun row per rebuild: ``running`` when it starts,
    ``completed`` with the replay metrics or ``failed`` with the error when
    it ends.  Each write commits in its own short transaction so a rebuild
    that rolls back entirely still leaves its failure on record.

Architecture position:
    Services -- boundary layer; owns its transactions.
"""

from __future__ import annotations

from collections.abc import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleet_kernel.db.engine import read_scope
from fleet_kernel.domain.clock import Clock, SystemClock
from fleet_kernel.domain.dtos import ReprocessResult
from fleet_kernel.domain.values import MaintenanceStatus
from fleet_kernel.logging_config import get_logger
from fleet_kernel.models.maintenance import MaintenanceRun

logger = get_logger("services.maintenance_recorder")


class MaintenanceRecorder:
    """Start/complete/fail bookkeeping for MaintenanceRun rows."""

    def __init__(self, session_factory: Callable[[], Session], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def _write(self, fn) -> UUID:
        session = self._session_factory()
        try:
            run_id = fn(session)
            session.commit()
            return run_id
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def start(self, operation_type: str, started_by: str | None = None) -> UUID:
        def _start(session: Session) -> UUID:
            run = MaintenanceRun(
                operation_type=operation_type,
                status=MaintenanceStatus.RUNNING.value,
                started_at=self._clock.now(),
                started_by=started_by,
            )
            session.add(run)
            session.flush()
            return run.id

        run_id = self._write(_start)
        logger.info(
            "maintenance_run_started",
            extra={"run_id": str(run_id), "operation_type": operation_type},
        )
        return run_id

    def complete(self, run_id: UUID, result: ReprocessResult) -> None:
        def _complete(session: Session) -> UUID:
            run = session.get(MaintenanceRun, run_id)
            run.status = MaintenanceStatus.COMPLETED.value
            run.completed_at = self._clock.now()
            run.payments_processed = result.payments_processed
            run.customers_affected = result.customers_affected
            run.total_credit_applied = result.total_credit_applied
            run.revenue_recalculated = result.revenue_recalculated
            run.duration_seconds = result.duration_seconds
            return run.id

        self._write(_complete)
        logger.info("maintenance_run_completed", extra={"run_id": str(run_id)})

    def fail(self, run_id: UUID, error: Exception) -> None:
        def _fail(session: Session) -> UUID:
            run = session.get(MaintenanceRun, run_id)
            run.status = MaintenanceStatus.FAILED.value
            run.completed_at = self._clock.now()
            run.error_message = str(error)
            run.failed_payment_id = getattr(error, "failed_payment_id", None)
            return run.id

        self._write(_fail)
        logger.warning(
            "maintenance_run_failed",
            extra={"run_id": str(run_id), "error": str(error)},
        )

    def recent_runs(self, limit: int = 10) -> list[dict]:
        with read_scope(self._session_factory) as session:
            runs = session.execute(
                select(MaintenanceRun)
                .order_by(MaintenanceRun.started_at.desc())
                .limit(limit)
            ).scalars()
            return [
                {
                    "run_id": str(r.id),
                    "operation_type": r.operation_type,
                    "status": r.status,
                    "started_at": r.started_at,
                    "completed_at": r.completed_at,
                    "payments_processed": r.payments_processed,
                    "customers_affected": r.customers_affected,
                    "error_message": r.error_message,
                    "failed_payment_id": r.failed_payment_id,
                }
                for r in runs
            ]
