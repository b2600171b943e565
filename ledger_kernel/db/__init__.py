"""Database layer - engine, base classes and column types."""

from ledger_kernel.db.base import UUID, Base, OwnedBase, UTCDateTime, UUIDString
from ledger_kernel.db.engine import create_ledger_engine, create_tables, drop_tables
from ledger_kernel.db.types import FixedDecimal, parse_amount, round_money

__all__ = [
    "create_ledger_engine",
    "create_tables",
    "drop_tables",
    "Base",
    "OwnedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "FixedDecimal",
    "parse_amount",
    "round_money",
]
