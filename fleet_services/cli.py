"""
fleet-ledger command line.

Usage:
    fleet-ledger init-db
    fleet-ledger apply-payment PAYMENT_ID
    fleet-ledger reapply-all [--started-by NAME]
    fleet-ledger balance CUSTOMER_ID [--statement]
    fleet-ledger runs [--limit N]

Configuration comes from ``fleet_config.get_active_config()`` (so
``DATABASE_URL`` and ``FLEET_LEDGER_CONFIG`` apply).  Output is JSON.
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence

from fleet_config import get_active_config
from fleet_config.bridges import engine_options, log_level
from fleet_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from fleet_kernel.exceptions import FleetLedgerError
from fleet_kernel.logging_config import configure_logging
from fleet_kernel.services.sequence_service import SequenceService
from fleet_services.ledger_gateway import LedgerGateway


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="fleet-ledger", description="Fleet payment ledger maintenance")
    p.add_argument("--config", default=None, help="YAML override file (default: $FLEET_LEDGER_CONFIG)")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and sequence counters")

    apply_p = sub.add_parser("apply-payment", help="Apply one payment")
    apply_p.add_argument("payment_id")

    reapply_p = sub.add_parser("reapply-all", help="Rebuild all payment-derived rows")
    reapply_p.add_argument("--started-by", default="cli")

    balance_p = sub.add_parser("balance", help="Customer net position")
    balance_p.add_argument("customer_id")
    balance_p.add_argument("--statement", action="store_true", help="Include statement lines")

    runs_p = sub.add_parser("runs", help="Recent maintenance runs")
    runs_p.add_argument("--limit", type=int, default=10)

    return p.parse_args(argv)


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    config = get_active_config(args.config)
    configure_logging(level=log_level(config))
    init_engine_from_url(**engine_options(config))

    if args.command == "init-db":
        create_tables()
        with session_scope() as session:
            SequenceService(session).initialize_sequences()
        _print({"ok": True, "database": config.database.url.split(":", 1)[0]})
        return 0

    gateway = LedgerGateway(config=config)

    if args.command == "apply-payment":
        response = gateway.apply_payment(args.payment_id)
    elif args.command == "reapply-all":
        response = gateway.reapply_all_payments(started_by=args.started_by)
    elif args.command == "runs":
        response = {"ok": True, "runs": gateway.maintenance_history(args.limit)}
    else:
        try:
            response = {"ok": True, **gateway.get_customer_balance_with_status(args.customer_id)}
            if args.statement:
                response["statement"] = gateway.get_customer_statement(args.customer_id)
        except FleetLedgerError as exc:
            response = {"ok": False, "error": str(exc), "code": exc.code}

    _print(response)
    return 0 if response.get("ok") else 1


if __name__ == "__main__":
    sys.exit(main())
