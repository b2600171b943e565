"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.holding_selector import HoldingSelector
from ledger_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "HoldingSelector",
    "TransactionSelector",
]
