"""
Ledger Kernel - transaction engine for a retail banking backend

Moves money between accounts, investments and loans with:
- Atomic multi-leg operations
- Non-negative balances under concurrent access
- One immutable audit record per committed operation
- Ownership checks on every debited holding
"""

__version__ = "0.1.0"
