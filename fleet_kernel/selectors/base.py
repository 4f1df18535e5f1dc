"""
Module: fleet_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the ledger: balances, statements and P&L
    reports are derived from stored rows on demand.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: selectors return frozen dataclasses or plain
      values, not ORM instances.
    - Derived balances: there are NO stored balances; every figure is
      computed from ledger and P&L rows.
"""

from abc import ABC

from sqlalchemy.orm import Session

from fleet_kernel.domain.clock import Clock, SystemClock


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  The clock decides what "today"
        means for due-date filtering.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Initialize the selector.

        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source; defaults to SystemClock.
        """
        self.session = session
        self.clock = clock or SystemClock()
