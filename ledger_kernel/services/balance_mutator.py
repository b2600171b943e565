"""
BalanceMutator -- the only code path that changes a holding's balance.

Responsibility:
    Applies one signed delta to one holding inside an open unit, enforcing
    the non-negative balance invariant.

Architecture position:
    Kernel > Services -- imperative shell.  Called once per leg by the
    Transfer Orchestrator.

Invariants enforced:
    - balance >= 0 after every write.  A debit that would go negative is
      rejected before anything is written.
    - balance <= MAX_AMOUNT after every write, so the stored cent count
      always fits the BIGINT column.
    - The read and the write happen through the same unit, on a row the
      unit holds locked, so no concurrent unit can interleave between them.

Failure modes:
    - InsufficientFundsError: delta < 0 and current + delta < 0.
    - BalanceLimitExceededError: delta > 0 and current + delta > MAX_AMOUNT.
    - HoldingNotFoundError: holding row does not exist.

Non-goals:
    - No deduplication: calling twice applies the delta twice.  The
      orchestrator guarantees one call per leg per operation.
"""

from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.store import LedgerStore, UnitHandle
from ledger_kernel.db.types import MAX_AMOUNT, round_money
from ledger_kernel.domain.dtos import Holding, HoldingKind
from ledger_kernel.exceptions import (
    BalanceLimitExceededError,
    HoldingNotFoundError,
    InsufficientFundsError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.balance_mutator")


class BalanceMutator:
    """Applies signed deltas to holdings."""

    def __init__(self, store: LedgerStore):
        self._store = store

    def apply_delta(
        self,
        unit: UnitHandle,
        kind: HoldingKind,
        holding_id: UUID,
        delta: Decimal,
    ) -> Holding:
        """
        Apply ``delta`` to a holding's balance.

        Preconditions:
            - unit is open.
            - delta is a two-place Decimal (already validated upstream).
        Postconditions:
            - On success the holding's balance is current + delta, written
              through the unit.
            - On InsufficientFundsError or BalanceLimitExceededError nothing
              has been written.

        Returns:
            The updated holding snapshot.
        """
        current = self._store.read_holding(unit, kind, holding_id)
        if current is None:
            raise HoldingNotFoundError(kind.value, str(holding_id))

        new_balance = round_money(current.balance + delta)

        # INVARIANT: balance >= 0 -- reject before any write
        if delta < 0 and new_balance < 0:
            logger.info(
                "debit_rejected_insufficient_funds",
                extra={
                    "holding_kind": kind.value,
                    "holding_id": str(holding_id),
                    "balance": current.balance,
                    "delta": delta,
                },
            )
            raise InsufficientFundsError(
                kind.value, str(holding_id), str(current.balance), str(-delta)
            )

        if delta > 0 and new_balance > MAX_AMOUNT:
            logger.info(
                "credit_rejected_balance_limit",
                extra={
                    "holding_kind": kind.value,
                    "holding_id": str(holding_id),
                    "balance": current.balance,
                    "delta": delta,
                },
            )
            raise BalanceLimitExceededError(
                kind.value, str(holding_id), str(current.balance), str(delta)
            )

        updated = self._store.write_holding(unit, kind, holding_id, balance=new_balance)
        logger.debug(
            "delta_applied",
            extra={
                "holding_kind": kind.value,
                "holding_id": str(holding_id),
                "delta": delta,
                "balance_before": current.balance,
                "balance_after": updated.balance,
            },
        )
        return updated
