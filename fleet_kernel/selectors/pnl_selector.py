"""
Module: fleet_kernel.selectors.pnl_selector
Responsibility: Fleet profitability reads over PnlEntry rows -- totals by
    side and category, per-vehicle summaries, and the rows one payment
    produced.
Architecture position: Kernel > Selectors.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from fleet_kernel.domain.dtos import PnlLine, VehiclePnlSummary
from fleet_kernel.domain.values import ZERO, PnlSide, to_money
from fleet_kernel.exceptions import VehicleNotFoundError
from fleet_kernel.models.fleet import Vehicle
from fleet_kernel.models.pnl import PnlEntry
from fleet_kernel.selectors.base import BaseSelector


class PnlSelector(BaseSelector):
    """P&L reads."""

    def totals(
        self,
        *,
        vehicle_id: UUID | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> dict[tuple[str, str], Decimal]:
        """Amount per (side, category), optionally for one vehicle and date range."""
        stmt = select(PnlEntry.side, PnlEntry.category, func.sum(PnlEntry.amount)).group_by(
            PnlEntry.side, PnlEntry.category
        )
        if vehicle_id is not None:
            stmt = stmt.where(PnlEntry.vehicle_id == vehicle_id)
        if start is not None:
            stmt = stmt.where(PnlEntry.entry_date >= start)
        if end is not None:
            stmt = stmt.where(PnlEntry.entry_date <= end)
        return {
            (side, category): to_money(total)
            for side, category, total in self.session.execute(stmt).all()
        }

    def vehicle_summary(self, vehicle_id: UUID) -> VehiclePnlSummary:
        if self.session.get(Vehicle, vehicle_id) is None:
            raise VehicleNotFoundError(vehicle_id)

        revenue: dict[str, Decimal] = {}
        cost: dict[str, Decimal] = {}
        for (side, category), amount in sorted(self.totals(vehicle_id=vehicle_id).items()):
            if side == PnlSide.REVENUE.value:
                revenue[category] = amount
            else:
                cost[category] = amount

        return VehiclePnlSummary(
            vehicle_id=vehicle_id,
            revenue_by_category=revenue,
            cost_by_category=cost,
            total_revenue=sum(revenue.values(), ZERO),
            total_cost=sum(cost.values(), ZERO),
        )

    def entries_for_payment(self, payment_id: UUID) -> list[PnlLine]:
        rows = self.session.execute(
            select(PnlEntry)
            .where(PnlEntry.payment_id == payment_id)
            .order_by(PnlEntry.category)
        ).scalars()
        return [
            PnlLine(
                entry_id=e.id,
                vehicle_id=e.vehicle_id,
                side=e.side,
                category=e.category,
                amount=to_money(e.amount),
                entry_date=e.entry_date,
                payment_id=e.payment_id,
                reference=e.reference,
            )
            for e in rows
        ]
