"""
TransferOrchestrator -- atomic money movements between holdings.

Responsibility:
    Exposes one operation per economic action (transfer, deposit,
    withdrawal, investment funding/withdrawal, loan disbursement).  Each is
    a single unit: ownership checks, one or two Balance Mutator legs and
    exactly one Transaction record, committed together or not at all.

Architecture position:
    Kernel > Services -- imperative shell.  The only component with
    cross-holding invariants.  Depends on LedgerStore, HoldingRegistry and
    BalanceMutator; called by whatever transport layer sits above the
    kernel with an already-authenticated owner_id.

Invariants enforced:
    - Atomicity: all legs and the audit record commit in one unit; any
      error aborts the unit and leaves every balance unchanged.
    - Debit before credit: a failed debit never reaches the credit leg, so
      money is never created; a failed credit aborts the unit, so money is
      never destroyed.
    - Exactly one Transaction record per committed operation, inserted
      after all legs inside the same unit.
    - Unauthorized debits are always rejected before any leg runs.
    - Lock order: holdings are locked in ascending id order.

Failure modes:
    - InvalidAmountError: before any unit is opened.
    - HoldingNotFoundError / UnauthorizedHoldingError: Authorizing step.
    - InvalidHoldingStateError: holding status forbids the operation.
    - InsufficientFundsError: Debiting step.
    - ConflictError: retried up to max_conflict_retries times with
      exponential backoff, then surfaced.
    - StoreUnavailableError: surfaced immediately; the unit is discarded.

State machine per invocation:
    STARTED -> VALIDATING -> AUTHORIZING -> DEBITING -> CREDITING
            -> RECORDING -> COMMITTED
    or ABORTED from any intermediate state on the first error.

Usage:
    orchestrator = TransferOrchestrator(store)
    receipt = orchestrator.transfer(owner_id, from_id, to_id, Decimal("40.00"))
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable
from uuid import UUID, uuid4

from ledger_kernel.db.store import LedgerStore, UnitHandle
from ledger_kernel.db.types import parse_amount
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import (
    Holding,
    HoldingKind,
    HoldingRef,
    OperationKind,
    OperationRequest,
    OperationState,
    TransactionReceipt,
    TransactionRecord,
)
from ledger_kernel.exceptions import (
    ConflictError,
    HoldingNotFoundError,
    InvalidHoldingStateError,
    LedgerKernelError,
    UnauthorizedHoldingError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.investment import InvestmentStatus
from ledger_kernel.models.loan import LoanStatus
from ledger_kernel.models.transaction import TransactionKind
from ledger_kernel.services.balance_mutator import BalanceMutator
from ledger_kernel.services.holding_registry import HoldingRegistry

logger = get_logger("services.transfer_orchestrator")

_MAX_DESCRIPTION_LENGTH = 255


@dataclass(frozen=True)
class LegPlan:
    """
    Leg composition for one OperationKind.

    Contract:
        ``source_kind`` is debited when ``debit_source`` is True;
        ``destination_kind`` is credited.  Status tuples, when set, list the
        statuses the holding must be in.
    """

    recorded_kind: TransactionKind
    source_kind: HoldingKind | None
    destination_kind: HoldingKind | None
    default_description: str
    debit_source: bool = True
    destination_requires_owner: bool = True
    source_statuses: tuple[str, ...] | None = None
    destination_statuses: tuple[str, ...] | None = None
    # DISBURSE_LOAN: the amount is the loan principal, not caller input
    amount_from_source: bool = False
    source_status_after: str | None = None


LEG_PLANS: dict[OperationKind, LegPlan] = {
    OperationKind.TRANSFER: LegPlan(
        recorded_kind=TransactionKind.TRANSFER,
        source_kind=HoldingKind.ACCOUNT,
        destination_kind=HoldingKind.ACCOUNT,
        default_description="Money Transfer",
        # Crediting another owner's account is allowed; debiting never is
        destination_requires_owner=False,
    ),
    OperationKind.DEPOSIT: LegPlan(
        recorded_kind=TransactionKind.DEPOSIT,
        source_kind=None,
        destination_kind=HoldingKind.ACCOUNT,
        default_description="Deposit",
    ),
    OperationKind.WITHDRAWAL: LegPlan(
        recorded_kind=TransactionKind.WITHDRAWAL,
        source_kind=HoldingKind.ACCOUNT,
        destination_kind=None,
        default_description="Withdrawal",
    ),
    OperationKind.FUND_INVESTMENT: LegPlan(
        recorded_kind=TransactionKind.TRANSFER,
        source_kind=HoldingKind.ACCOUNT,
        destination_kind=HoldingKind.INVESTMENT,
        default_description="Investment deposit",
        destination_statuses=(InvestmentStatus.ACTIVE.value,),
    ),
    OperationKind.WITHDRAW_INVESTMENT: LegPlan(
        recorded_kind=TransactionKind.WITHDRAWAL,
        source_kind=HoldingKind.INVESTMENT,
        destination_kind=HoldingKind.ACCOUNT,
        default_description="Investment withdrawal",
        source_statuses=(InvestmentStatus.ACTIVE.value, InvestmentStatus.MATURED.value),
    ),
    OperationKind.DISBURSE_LOAN: LegPlan(
        recorded_kind=TransactionKind.DEPOSIT,
        source_kind=HoldingKind.LOAN,
        destination_kind=HoldingKind.ACCOUNT,
        default_description="Loan disbursement",
        debit_source=False,
        source_statuses=(LoanStatus.APPROVED.value,),
        amount_from_source=True,
        source_status_after=LoanStatus.ACTIVE.value,
    ),
}


class _StateTracker:
    """Holds the current OperationState of one invocation and logs moves."""

    def __init__(self):
        self.state = OperationState.STARTED

    def advance(self, state: OperationState) -> None:
        logger.debug(
            "operation_state",
            extra={"from_state": self.state.value, "to_state": state.value},
        )
        self.state = state


class TransferOrchestrator:
    """
    Composes balance legs and one audit record into atomic units.

    Contract:
        Every public operation returns a TransactionReceipt for a committed
        unit or raises a LedgerKernelError after the unit was aborted.

    Guarantees:
        - No partial state is ever externally observable.
        - Only ConflictError is retried; all other errors surface verbatim.

    Non-goals:
        - Does NOT authenticate callers; owner_id is trusted.
        - Does NOT deduplicate retried client requests; each successful
          call is a new operation.
    """

    def __init__(
        self,
        store: LedgerStore,
        clock: Clock | None = None,
        registry: HoldingRegistry | None = None,
        mutator: BalanceMutator | None = None,
        max_conflict_retries: int = 3,
        retry_backoff_seconds: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._store = store
        self._clock = clock or store.clock
        self._registry = registry or HoldingRegistry(store)
        self._mutator = mutator or BalanceMutator(store)
        self._max_conflict_retries = max_conflict_retries
        self._retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, store: LedgerStore, settings, **kwargs) -> TransferOrchestrator:
        """Build an orchestrator using the retry policy from LedgerSettings."""
        return cls(
            store,
            max_conflict_retries=settings.max_conflict_retries,
            retry_backoff_seconds=settings.retry_backoff_seconds,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def transfer(
        self,
        owner_id: UUID,
        from_holding_id: UUID,
        to_holding_id: UUID,
        amount: object,
        description: str | None = None,
    ) -> TransactionReceipt:
        """Move ``amount`` from one of the caller's accounts to any account."""
        return self.execute(
            OperationRequest(
                operation=OperationKind.TRANSFER,
                owner_id=owner_id,
                amount=amount,
                source=HoldingRef(HoldingKind.ACCOUNT, from_holding_id),
                destination=HoldingRef(HoldingKind.ACCOUNT, to_holding_id),
                description=description,
            )
        )

    def deposit(
        self,
        owner_id: UUID,
        to_holding_id: UUID,
        amount: object,
        description: str | None = None,
    ) -> TransactionReceipt:
        """Credit one of the caller's accounts."""
        return self.execute(
            OperationRequest(
                operation=OperationKind.DEPOSIT,
                owner_id=owner_id,
                amount=amount,
                destination=HoldingRef(HoldingKind.ACCOUNT, to_holding_id),
                description=description,
            )
        )

    def withdraw(
        self,
        owner_id: UUID,
        from_holding_id: UUID,
        amount: object,
        description: str | None = None,
    ) -> TransactionReceipt:
        """Debit one of the caller's accounts."""
        return self.execute(
            OperationRequest(
                operation=OperationKind.WITHDRAWAL,
                owner_id=owner_id,
                amount=amount,
                source=HoldingRef(HoldingKind.ACCOUNT, from_holding_id),
                description=description,
            )
        )

    def fund_investment(
        self,
        owner_id: UUID,
        account_id: UUID,
        investment_id: UUID,
        amount: object,
    ) -> TransactionReceipt:
        """Move ``amount`` from an account into an active investment."""
        return self.execute(
            OperationRequest(
                operation=OperationKind.FUND_INVESTMENT,
                owner_id=owner_id,
                amount=amount,
                source=HoldingRef(HoldingKind.ACCOUNT, account_id),
                destination=HoldingRef(HoldingKind.INVESTMENT, investment_id),
            )
        )

    def withdraw_investment(
        self,
        owner_id: UUID,
        investment_id: UUID,
        account_id: UUID,
        amount: object,
    ) -> TransactionReceipt:
        """Move ``amount`` from an investment back into an account."""
        return self.execute(
            OperationRequest(
                operation=OperationKind.WITHDRAW_INVESTMENT,
                owner_id=owner_id,
                amount=amount,
                source=HoldingRef(HoldingKind.INVESTMENT, investment_id),
                destination=HoldingRef(HoldingKind.ACCOUNT, account_id),
            )
        )

    def disburse_loan(
        self,
        owner_id: UUID,
        loan_id: UUID,
        account_id: UUID,
    ) -> TransactionReceipt:
        """Credit an approved loan's principal to an account and activate the loan."""
        return self.execute(
            OperationRequest(
                operation=OperationKind.DISBURSE_LOAN,
                owner_id=owner_id,
                amount=None,
                source=HoldingRef(HoldingKind.LOAN, loan_id),
                destination=HoldingRef(HoldingKind.ACCOUNT, account_id),
            )
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, request: OperationRequest) -> TransactionReceipt:
        """
        Run one operation, retrying the whole unit on ConflictError.

        Raises:
            InvalidAmountError: Before any unit is opened.
            ConflictError: When every attempt collided with another unit.
            LedgerKernelError: Any other failure, surfaced verbatim.
        """
        plan = LEG_PLANS[request.operation]
        self._check_refs(request, plan)

        with LogContext.bind(
            correlation_id=str(uuid4()),
            owner_id=str(request.owner_id),
            operation=request.operation.value,
        ):
            tracker = _StateTracker()
            tracker.advance(OperationState.VALIDATING)
            amount = None
            if not plan.amount_from_source:
                try:
                    amount = parse_amount(request.amount)
                except LedgerKernelError as exc:
                    tracker.advance(OperationState.ABORTED)
                    logger.info(
                        "operation_rejected",
                        extra={"error_code": exc.code, "reason": str(exc)},
                    )
                    raise

            attempt = 0
            while True:
                attempt += 1
                try:
                    return self._run_unit(request, plan, amount, attempt, tracker)
                except ConflictError as exc:
                    if attempt > self._max_conflict_retries:
                        if tracker.state != OperationState.ABORTED:
                            tracker.advance(OperationState.ABORTED)
                        logger.warning(
                            "operation_conflict_exhausted",
                            extra={"attempts": attempt, "reason": exc.reason},
                        )
                        raise ConflictError(exc.reason, attempts=attempt) from exc
                    delay = self._retry_backoff_seconds * (2 ** (attempt - 1))
                    logger.info(
                        "unit_conflict_retry",
                        extra={"attempt": attempt, "delay_seconds": delay},
                    )
                    self._sleep(delay)

    def _run_unit(
        self,
        request: OperationRequest,
        plan: LegPlan,
        amount: Decimal | None,
        attempt: int,
        tracker: _StateTracker,
    ) -> TransactionReceipt:
        """One attempt: open unit, authorize, legs, record, commit."""
        unit = self._store.begin_unit()
        try:
            with LogContext.bind(unit_id=str(unit.id)):
                try:
                    tracker.advance(OperationState.AUTHORIZING)
                    holdings = self._authorize(unit, request, plan)

                    if plan.amount_from_source:
                        amount = holdings[request.source].balance

                    if request.source is not None and plan.debit_source:
                        tracker.advance(OperationState.DEBITING)
                        self._mutator.apply_delta(
                            unit, request.source.kind, request.source.holding_id, -amount
                        )

                    if request.destination is not None:
                        tracker.advance(OperationState.CREDITING)
                        self._mutator.apply_delta(
                            unit, request.destination.kind, request.destination.holding_id, amount
                        )

                    if plan.source_status_after is not None:
                        self._store.write_holding(
                            unit,
                            request.source.kind,
                            request.source.holding_id,
                            status=plan.source_status_after,
                        )

                    tracker.advance(OperationState.RECORDING)
                    record = self._store.insert_transaction(
                        unit,
                        TransactionRecord(
                            id=uuid4(),
                            owner_id=request.owner_id,
                            from_holding=request.source,
                            to_holding=request.destination,
                            amount=amount,
                            kind=plan.recorded_kind.value,
                            operation=request.operation.value,
                            description=self._description(request, plan),
                            timestamp=self._clock.now(),
                        ),
                    )

                    self._store.commit(unit)
                    tracker.advance(OperationState.COMMITTED)
                except LedgerKernelError as exc:
                    failed_in = tracker.state
                    tracker.advance(OperationState.ABORTED)
                    logger.info(
                        "operation_aborted",
                        extra={
                            "failed_state": failed_in.value,
                            "error_code": exc.code,
                            "reason": _abort_reason(exc),
                            "attempt": attempt,
                        },
                    )
                    raise

                logger.info(
                    "operation_committed",
                    extra={
                        "transaction_id": str(record.id),
                        "amount": record.amount,
                        "kind": record.kind,
                        "attempt": attempt,
                    },
                )
                return TransactionReceipt(
                    transaction_id=record.id,
                    operation=request.operation,
                    kind=record.kind,
                    amount=record.amount,
                    timestamp=record.timestamp,
                    attempts=attempt,
                )
        finally:
            # No-op once committed
            self._store.abort(unit)

    def _authorize(
        self,
        unit: UnitHandle,
        request: OperationRequest,
        plan: LegPlan,
    ) -> dict[HoldingRef, Holding]:
        """Resolve and lock every holding the operation touches."""
        refs: list[tuple[HoldingRef, bool]] = []
        if request.source is not None:
            refs.append((request.source, True))
        if request.destination is not None:
            refs.append((request.destination, plan.destination_requires_owner))

        holdings = self._registry.resolve_all(unit, request.owner_id, refs)

        if plan.source_statuses is not None:
            _require_status(holdings[request.source], plan.source_statuses)
        if plan.destination_statuses is not None:
            _require_status(holdings[request.destination], plan.destination_statuses)
        return holdings

    @staticmethod
    def _check_refs(request: OperationRequest, plan: LegPlan) -> None:
        """Reject requests whose holding refs do not match the operation."""
        for label, ref, expected in (
            ("source", request.source, plan.source_kind),
            ("destination", request.destination, plan.destination_kind),
        ):
            actual = ref.kind if ref is not None else None
            if actual != expected:
                raise ValueError(
                    f"{request.operation.value} requires {label} kind "
                    f"{expected.value if expected else None}, got {actual.value if actual else None}"
                )

    @staticmethod
    def _description(request: OperationRequest, plan: LegPlan) -> str:
        description = (request.description or "").strip() or plan.default_description
        return description[:_MAX_DESCRIPTION_LENGTH]


def _require_status(holding: Holding, allowed: tuple[str, ...]) -> None:
    if holding.status not in allowed:
        raise InvalidHoldingStateError(
            holding.kind.value, str(holding.id), str(holding.status), allowed
        )


def _abort_reason(exc: LedgerKernelError) -> str:
    """Server-side reason; distinguishes not-owner from not-found."""
    if isinstance(exc, UnauthorizedHoldingError):
        return "not_owner"
    if isinstance(exc, HoldingNotFoundError):
        return "not_found"
    return exc.code.lower()
