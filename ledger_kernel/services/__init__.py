"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.balance_mutator import BalanceMutator
from ledger_kernel.services.holding_registry import HoldingRegistry
from ledger_kernel.services.holding_service import HoldingService
from ledger_kernel.services.transfer_orchestrator import LEG_PLANS, LegPlan, TransferOrchestrator

__all__ = [
    "BalanceMutator",
    "HoldingRegistry",
    "HoldingService",
    "LEG_PLANS",
    "LegPlan",
    "TransferOrchestrator",
]
