"""
Tests for PnlPoster manual postings and the P&L selector.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from fleet_kernel.domain.values import PnlSide
from fleet_kernel.exceptions import InvalidPnlEntryError, VehicleNotFoundError
from fleet_kernel.models.fleet import Vehicle
from fleet_kernel.models.party import Customer
from fleet_kernel.models.pnl import PnlEntry
from fleet_kernel.selectors.pnl_selector import PnlSelector
from fleet_kernel.services.pnl_poster import PnlPoster


@pytest.fixture
def pnl_poster(session, clock):
    return PnlPoster(session, clock)


@pytest.fixture
def pnl_selector(session, clock):
    return PnlSelector(session, clock)


class TestAcquisitionCost:
    def test_posts_purchase_price(self, pnl_poster, create_vehicle):
        vehicle = create_vehicle(
            purchase_price=Decimal("18500"), acquisition_date=date(2023, 11, 2)
        )

        entry = pnl_poster.post_acquisition_cost(vehicle.id)

        assert (entry.side, entry.category) == ("Cost", "Acquisition")
        assert entry.amount == Decimal("18500.00")
        assert entry.entry_date == date(2023, 11, 2)
        assert entry.reference == f"acquisition:{vehicle.id}"

    def test_idempotent(self, session, pnl_poster, create_vehicle):
        vehicle = create_vehicle(purchase_price=Decimal("18500"))

        first = pnl_poster.post_acquisition_cost(vehicle.id)
        second = pnl_poster.post_acquisition_cost(vehicle.id)

        assert first.id == second.id
        assert session.execute(select(func.count(PnlEntry.id))).scalar_one() == 1

    def test_defaults_to_today_without_acquisition_date(self, pnl_poster, create_vehicle, clock):
        vehicle = create_vehicle(purchase_price=Decimal("100"))

        assert pnl_poster.post_acquisition_cost(vehicle.id).entry_date == clock.today()

    def test_missing_price_rejected(self, pnl_poster, create_vehicle):
        with pytest.raises(InvalidPnlEntryError):
            pnl_poster.post_acquisition_cost(create_vehicle().id)

    def test_unknown_vehicle(self, pnl_poster):
        with pytest.raises(VehicleNotFoundError):
            pnl_poster.post_acquisition_cost(uuid4())


class TestManualValidation:
    def test_unknown_category(self, pnl_poster):
        with pytest.raises(InvalidPnlEntryError, match="unknown category"):
            pnl_poster.post_manual(
                side=PnlSide.COST,
                category="Snacks",
                amount=Decimal("5"),
                entry_date=date(2024, 1, 1),
                reference="manual:1",
            )

    def test_non_positive_amount(self, pnl_poster):
        with pytest.raises(InvalidPnlEntryError):
            pnl_poster.post_manual(
                side=PnlSide.COST,
                category="Service",
                amount=Decimal("-5"),
                entry_date=date(2024, 1, 1),
                reference="manual:2",
            )


class TestPnlSelector:
    def test_vehicle_summary(
        self,
        pnl_poster,
        pnl_selector,
        allocation,
        charge_service,
        create_vehicle,
        create_rental,
        create_payment,
    ):
        vehicle = create_vehicle(purchase_price=Decimal("12000"))
        rental = create_rental(vehicle=vehicle)
        charge_service.create_charge(rental.id, date(2024, 1, 1), "1000")
        allocation.apply_payment(
            create_payment(rental.customer_id, "1000", rental_id=rental.id).id
        )
        pnl_poster.post_acquisition_cost(vehicle.id)
        pnl_poster.post_manual(
            side=PnlSide.COST,
            category="Service",
            amount=Decimal("250"),
            entry_date=date(2024, 2, 1),
            reference="service:1",
            vehicle_id=vehicle.id,
        )

        summary = pnl_selector.vehicle_summary(vehicle.id)

        assert summary.revenue_by_category == {"Rental": Decimal("1000.00")}
        assert summary.cost_by_category == {
            "Acquisition": Decimal("12000.00"),
            "Service": Decimal("250.00"),
        }
        assert summary.net == Decimal("-11250.00")

    def test_totals_date_range(self, pnl_poster, pnl_selector, create_vehicle):
        vehicle = create_vehicle()
        for n, day in enumerate([date(2024, 1, 10), date(2024, 2, 10)]):
            pnl_poster.post_manual(
                side=PnlSide.COST,
                category="Service",
                amount=Decimal("100"),
                entry_date=day,
                reference=f"service:{n}",
                vehicle_id=vehicle.id,
            )

        totals = pnl_selector.totals(start=date(2024, 2, 1), end=date(2024, 2, 29))

        assert totals == {("Cost", "Service"): Decimal("100.00")}

    def test_unknown_vehicle(self, pnl_selector):
        with pytest.raises(VehicleNotFoundError):
            pnl_selector.vehicle_summary(uuid4())

    def test_entries_for_payment_one_row_per_category(
        self,
        session,
        pnl_selector,
        allocation,
        charge_service,
        fine_service,
        create_fine,
        create_rental,
        create_payment,
    ):
        rental = create_rental()
        charge_service.create_charge(rental.id, date(2024, 1, 1), "1000")
        fine = create_fine(
            session.get(Vehicle, rental.vehicle_id),
            session.get(Customer, rental.customer_id),
            amount=Decimal("100"),
        )
        fine_service.charge_fine(fine.id)
        payment = create_payment(rental.customer_id, "1100", rental_id=rental.id)
        allocation.apply_payment(payment.id)

        lines = pnl_selector.entries_for_payment(payment.id)

        assert [(line.side, line.category, line.amount) for line in lines] == [
            ("Revenue", "Fines", Decimal("100.00")),
            ("Revenue", "Rental", Decimal("1000.00")),
        ]
        assert all(line.payment_id == payment.id for line in lines)
        assert all(line.vehicle_id == rental.vehicle_id for line in lines)
