"""
HoldingRegistry -- ownership-checked holding lookup.

Responsibility:
    Resolves ``(owner_id, holding_id, kind)`` to a locked Holding snapshot
    inside an open unit and asserts that the caller owns it.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the Transfer
    Orchestrator during the Authorizing step and by HoldingService.

Invariants enforced:
    - A holding owned by someone else is reported with the same code and
      message as a missing one (UnauthorizedHoldingError subclasses
      HoldingNotFoundError), so callers cannot probe for other owners'
      holdings.

Failure modes:
    - HoldingNotFoundError: no such holding of that kind.
    - UnauthorizedHoldingError: holding exists but belongs to another owner.
"""

from uuid import UUID

from ledger_kernel.db.store import LedgerStore, UnitHandle
from ledger_kernel.domain.dtos import Holding, HoldingKind, HoldingRef
from ledger_kernel.exceptions import HoldingNotFoundError, UnauthorizedHoldingError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.holding_registry")


class HoldingRegistry:
    """
    Maps a caller identity to the holdings it may mutate.

    Contract:
        resolve() returns a Holding whose row is locked for the rest of the
        unit, or raises.

    Non-goals:
        - Does NOT authenticate owner_id; the identity is trusted as given.
        - Does NOT check balances or status.
    """

    def __init__(self, store: LedgerStore):
        self._store = store

    def resolve(
        self,
        unit: UnitHandle,
        owner_id: UUID,
        holding_id: UUID,
        kind: HoldingKind,
        require_owner: bool = True,
    ) -> Holding:
        """
        Resolve a holding and (optionally) assert ownership.

        Args:
            unit: Open unit; the holding row is locked within it.
            owner_id: Authenticated caller identity.
            holding_id: Holding to resolve.
            kind: Which holding table to look in.
            require_owner: When False only existence is checked (used for
                the credit leg of a Transfer to another owner's account).

        Raises:
            HoldingNotFoundError: Holding does not exist.
            UnauthorizedHoldingError: Holding is not owned by owner_id.
        """
        holding = self._store.read_holding(unit, kind, holding_id)
        if holding is None:
            raise HoldingNotFoundError(kind.value, str(holding_id))
        if require_owner and holding.owner_id != owner_id:
            raise UnauthorizedHoldingError(kind.value, str(holding_id))
        return holding

    def resolve_all(
        self,
        unit: UnitHandle,
        owner_id: UUID,
        refs: list[tuple[HoldingRef, bool]],
    ) -> dict[HoldingRef, Holding]:
        """
        Resolve several holdings, locking them in ascending id order.

        A fixed lock order means two units touching the same pair of
        holdings in opposite directions queue instead of deadlocking.

        Args:
            refs: (holding ref, require_owner) pairs.
        """
        resolved: dict[HoldingRef, Holding] = {}
        for ref, require_owner in sorted(refs, key=lambda item: str(item[0].holding_id)):
            resolved[ref] = self.resolve(
                unit, owner_id, ref.holding_id, ref.kind, require_owner=require_owner
            )
        return resolved
