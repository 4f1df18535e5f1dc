"""
Module: fleet_engines.allocation
Responsibility:
    Walk a payment amount across open charges oldest-first (FIFO by due
    date, ties broken by charge creation order) and report how much each
    charge receives.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import fleet_kernel.domain.values and the logging helpers.

Invariants enforced:
    - Conservation: total_allocated + unallocated == source amount.
    - No target receives more than its remaining amount.
    - Order: (due_date, seq) ascending, independent of input order.
    - Purity: no clock access, no I/O.

Failure modes:
    - ValueError on a negative source amount or a negative target remaining.

Usage:
    from fleet_engines.allocation import AllocationTarget, FifoAllocator

    result = FifoAllocator().allocate(
        amount=Decimal("1000.00"),
        targets=[
            AllocationTarget(target_id=jan.id, due_date=date(2024, 1, 1), seq=1,
                             remaining=Decimal("1000.00")),
            AllocationTarget(target_id=feb.id, due_date=date(2024, 2, 1), seq=2,
                             remaining=Decimal("1000.00")),
        ],
    )
    # result.lines -> one line, jan fully settled
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from fleet_kernel.domain.values import ZERO, to_money
from fleet_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class AllocationTarget:
    """
    An open charge that can receive part of a payment.

    Guarantees:
        - ``remaining`` is non-negative.
    Non-goals:
        - Carries no ORM state; ``target_id`` and ``category`` are passed
          through untouched so callers can map lines back to their rows.
    """

    target_id: Any
    due_date: date
    seq: int
    remaining: Decimal
    category: str | None = None

    def __post_init__(self) -> None:
        if self.remaining < ZERO:
            raise ValueError(
                f"Target {self.target_id} has negative remaining {self.remaining}"
            )

    @property
    def sort_key(self) -> tuple[date, int]:
        return (self.due_date, self.seq)


@dataclass(frozen=True)
class AllocationLine:
    """
    Amount applied to one target.

    Guarantees:
        - ``0 < applied <= remaining_before``.
        - ``remaining_after == remaining_before - applied``.
    """

    target_id: Any
    category: str | None
    due_date: date
    applied: Decimal
    remaining_before: Decimal

    @property
    def remaining_after(self) -> Decimal:
        return self.remaining_before - self.applied

    @property
    def is_settled(self) -> bool:
        return self.remaining_after == ZERO


@dataclass(frozen=True)
class AllocationResult:
    """
    Complete FIFO allocation outcome.

    Guarantees:
        - ``total_allocated + unallocated == source_amount``.
        - ``lines`` only contains targets that received a positive amount,
          in allocation order.
    """

    source_amount: Decimal
    lines: tuple[AllocationLine, ...]
    total_allocated: Decimal
    unallocated: Decimal

    @property
    def is_fully_allocated(self) -> bool:
        return self.unallocated == ZERO

    @property
    def allocation_count(self) -> int:
        return len(self.lines)

    def allocated_by_category(self) -> dict[str, Decimal]:
        """Applied totals per category, in first-seen order."""
        totals: dict[str, Decimal] = {}
        for line in self.lines:
            key = line.category or ""
            totals[key] = totals.get(key, ZERO) + line.applied
        return totals


class FifoAllocator:
    """
    Allocate a payment across charges oldest-first.

    Contract:
        Pure function of (amount, targets).  Amounts are normalized to the
        ledger's minor unit before allocation so every line is already a
        postable amount.
    Non-goals:
        - Does not filter targets by customer or rental; the caller passes
          exactly the charges in scope.
        - Does not persist anything.
    """

    def __init__(self, places: int = 2):
        self._places = places

    def order(self, targets: Sequence[AllocationTarget]) -> list[AllocationTarget]:
        """Targets in allocation order: due date ascending, then seq."""
        return sorted(targets, key=lambda t: t.sort_key)

    def allocate(
        self,
        amount: Decimal,
        targets: Sequence[AllocationTarget],
    ) -> AllocationResult:
        t0 = time.monotonic()
        amount = to_money(amount, self._places)
        if amount < ZERO:
            raise ValueError(f"Cannot allocate a negative amount: {amount}")

        logger.debug("allocation_started", extra={
            "amount": str(amount),
            "target_count": len(targets),
        })

        remaining_to_allocate = amount
        lines: list[AllocationLine] = []

        for target in self.order(targets):
            if remaining_to_allocate <= ZERO:
                break
            eligible = to_money(target.remaining, self._places)
            if eligible <= ZERO:
                continue

            to_allocate = min(remaining_to_allocate, eligible)
            remaining_to_allocate -= to_allocate

            lines.append(
                AllocationLine(
                    target_id=target.target_id,
                    category=target.category,
                    due_date=target.due_date,
                    applied=to_allocate,
                    remaining_before=eligible,
                )
            )

        total_allocated = amount - remaining_to_allocate
        duration_ms = round((time.monotonic() - t0) * 1000, 2)

        logger.info("allocation_fifo_completed", extra={
            "source_amount": str(amount),
            "total_allocated": str(total_allocated),
            "unallocated": str(remaining_to_allocate),
            "targets_funded": len(lines),
            "target_count": len(targets),
            "duration_ms": duration_ms,
        })

        return AllocationResult(
            source_amount=amount,
            lines=tuple(lines),
            total_allocated=total_allocated,
            unallocated=remaining_to_allocate,
        )
