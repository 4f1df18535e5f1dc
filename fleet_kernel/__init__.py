"""
Fleet Kernel - payment ledger and allocation core.

A transactional ledger for a fleet-rental back office with:
- Idempotent payment processing
- Deterministic FIFO allocation of payments against charges
- Derived profit-and-loss postings
- Balances recomputed purely from ledger entries
- Full replay of payment processing for drift repair
"""

__version__ = "0.1.0"
