"""
Pure domain layer.

Immutable data transfer objects and the clock interface, with NO
dependencies on the ORM, the database or I/O.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    Holding,
    HoldingKind,
    HoldingRef,
    InvestmentDetail,
    LoanDetail,
    MonthlySummary,
    OperationKind,
    OperationRequest,
    OperationState,
    TransactionPage,
    TransactionReceipt,
    TransactionRecord,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Holding",
    "HoldingKind",
    "HoldingRef",
    "InvestmentDetail",
    "LoanDetail",
    "MonthlySummary",
    "OperationKind",
    "OperationRequest",
    "OperationState",
    "TransactionPage",
    "TransactionReceipt",
    "TransactionRecord",
]
