"""Selectors for the fleet ledger kernel (read side)."""

from fleet_kernel.selectors.charge_selector import ChargeSelector
from fleet_kernel.selectors.ledger_selector import LedgerSelector, classify_balance
from fleet_kernel.selectors.payment_selector import PaymentSelector
from fleet_kernel.selectors.pnl_selector import PnlSelector

__all__ = [
    "ChargeSelector",
    "LedgerSelector",
    "PaymentSelector",
    "PnlSelector",
    "classify_balance",
]
