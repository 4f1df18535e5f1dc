"""
Tests for the fleet-ledger command line.
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from fleet_kernel.db.engine import reset_engine, session_scope
from fleet_kernel.models.fleet import Rental, Vehicle
from fleet_kernel.models.party import Customer
from fleet_kernel.services.charge_service import ChargeService
from fleet_kernel.services.payment_service import PaymentService
from fleet_services.cli import main


@pytest.fixture
def cli_db(tmp_path, monkeypatch):
    """Point the CLI at a fresh SQLite file through DATABASE_URL."""
    monkeypatch.delenv("FLEET_LEDGER_CONFIG", raising=False)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    yield
    reset_engine()


def _run(capsys, *argv) -> tuple[int, dict]:
    code = main(list(argv))
    return code, json.loads(capsys.readouterr().out)


def _seed() -> tuple[str, str]:
    with session_scope() as s:
        customer = Customer(name="Cli Customer")
        vehicle = Vehicle(reg="CL11 CLI")
        s.add_all([customer, vehicle])
        s.flush()
        rental = Rental(
            customer_id=customer.id,
            vehicle_id=vehicle.id,
            start_date=date(2024, 1, 1),
            monthly_amount=Decimal("1000"),
        )
        s.add(rental)
        s.flush()
        ChargeService(s).create_charge(rental.id, date(2024, 1, 1), "1000")
        payment = PaymentService(s).record_payment(customer.id, "250", date(2024, 1, 3))
        return str(customer.id), str(payment.id)


class TestCli:
    def test_init_apply_balance_reapply(self, cli_db, capsys):
        code, out = _run(capsys, "init-db")
        assert code == 0
        assert out == {"ok": True, "database": "sqlite"}

        customer_id, payment_id = _seed()

        code, out = _run(capsys, "apply-payment", payment_id)
        assert code == 0
        assert out["status"] == "Applied"

        code, out = _run(capsys, "balance", customer_id, "--statement")
        assert code == 0
        assert out["balance"] == "750.00"
        assert out["status"] == "In Debt"
        assert len(out["statement"]) == 2

        code, out = _run(capsys, "reapply-all", "--started-by", "tester")
        assert code == 0
        assert out["payments_processed"] == 1

        code, out = _run(capsys, "runs", "--limit", "5")
        assert out["runs"][0]["status"] == "completed"

    def test_unknown_payment_exit_code(self, cli_db, capsys):
        _run(capsys, "init-db")

        code, out = _run(capsys, "apply-payment", "00000000-0000-0000-0000-000000000000")

        assert code == 1
        assert out["code"] == "PAYMENT_NOT_FOUND"

    def test_unknown_customer_balance(self, cli_db, capsys):
        _run(capsys, "init-db")

        code, out = _run(capsys, "balance", "00000000-0000-0000-0000-000000000000")

        assert code == 1
        assert out["code"] == "CUSTOMER_NOT_FOUND"
