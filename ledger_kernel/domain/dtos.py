"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the service boundary:
    Holding (the unified balance-bearing snapshot), OperationRequest (the
    closed tagged variant a caller submits), TransactionRecord (the audit
    row), TransactionReceipt (what a successful operation returns) and the
    read-side pages and summaries.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
    from_model() class methods exist as boundary converters and are only
    invoked from the store and selectors.

Invariants enforced:
    - Services and selectors return DTOs, never ORM entities.
    - OperationKind is explicit: the caller selects the intent, the kernel
      never infers it from which fields happen to be set.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel
    from ledger_kernel.models.investment import Investment as InvestmentModel
    from ledger_kernel.models.loan import Loan as LoanModel
    from ledger_kernel.models.transaction import Transaction as TransactionModel


class HoldingKind(str, Enum):
    """The three balance-bearing tables the ledger tracks."""

    ACCOUNT = "account"
    INVESTMENT = "investment"
    LOAN = "loan"


class OperationKind(str, Enum):
    """
    Economic action requested by a caller.

    Contract:
        Closed set; each member maps to exactly one leg plan in the
        Transfer Orchestrator.
    """

    TRANSFER = "transfer"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    FUND_INVESTMENT = "fund_investment"
    WITHDRAW_INVESTMENT = "withdraw_investment"
    DISBURSE_LOAN = "disburse_loan"


class OperationState(str, Enum):
    """Per-invocation orchestrator state (logged, never persisted)."""

    STARTED = "started"
    VALIDATING = "validating"
    AUTHORIZING = "authorizing"
    DEBITING = "debiting"
    CREDITING = "crediting"
    RECORDING = "recording"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class HoldingRef:
    """A (kind, id) pair naming one holding."""

    kind: HoldingKind
    holding_id: UUID

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.holding_id}"


@dataclass(frozen=True)
class Holding:
    """
    Snapshot of one balance-bearing entity.

    Contract:
        ``balance`` is Account.balance, Investment.amount or Loan.amount.
        ``holding_type`` and ``status`` carry the entity's own type/status
        strings (status is None for accounts).
    """

    kind: HoldingKind
    id: UUID
    owner_id: UUID
    balance: Decimal
    holding_type: str
    status: str | None
    created_at: datetime

    @property
    def ref(self) -> HoldingRef:
        return HoldingRef(self.kind, self.id)

    @classmethod
    def from_model(
        cls,
        kind: HoldingKind,
        model: AccountModel | InvestmentModel | LoanModel,
    ) -> Holding:
        if kind == HoldingKind.ACCOUNT:
            balance, holding_type, status = model.balance, model.account_type, None
        elif kind == HoldingKind.INVESTMENT:
            balance, holding_type, status = model.amount, model.investment_type, model.status
        else:
            balance, holding_type, status = model.amount, model.loan_type, model.status
        return cls(
            kind=kind,
            id=model.id,
            owner_id=model.owner_id,
            balance=balance,
            holding_type=_enum_value(holding_type),
            status=_enum_value(status) if status is not None else None,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class InvestmentDetail:
    """Read-side view of an investment."""

    id: UUID
    investment_type: str
    amount: Decimal
    interest_rate: Decimal | None
    term_months: int | None
    status: str
    created_at: datetime

    @classmethod
    def from_model(cls, model: InvestmentModel) -> InvestmentDetail:
        return cls(
            id=model.id,
            investment_type=_enum_value(model.investment_type),
            amount=model.amount,
            interest_rate=model.interest_rate,
            term_months=model.term_months,
            status=_enum_value(model.status),
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class LoanDetail:
    """Read-side view of a loan."""

    id: UUID
    loan_type: str
    amount: Decimal
    interest_rate: Decimal
    term_months: int
    status: str
    created_at: datetime
    next_due_date: date | None

    @classmethod
    def from_model(cls, model: LoanModel) -> LoanDetail:
        return cls(
            id=model.id,
            loan_type=_enum_value(model.loan_type),
            amount=model.amount,
            interest_rate=model.interest_rate,
            term_months=model.term_months,
            status=_enum_value(model.status),
            created_at=model.created_at,
            next_due_date=model.next_due_date,
        )


@dataclass(frozen=True)
class OperationRequest:
    """
    One economic action submitted to the orchestrator.

    ``source`` is the debited holding, ``destination`` the credited one;
    either is None for single-leg operations.  ``amount`` is raw caller
    input and is validated before any unit opens.  For DISBURSE_LOAN the
    amount is None and the loan principal is used.
    """

    operation: OperationKind
    owner_id: UUID
    amount: object
    source: HoldingRef | None = None
    destination: HoldingRef | None = None
    description: str | None = None


@dataclass(frozen=True)
class TransactionRecord:
    """An audit row, either about to be inserted or read back."""

    id: UUID
    owner_id: UUID
    from_holding: HoldingRef | None
    to_holding: HoldingRef | None
    amount: Decimal
    kind: str
    operation: str
    description: str
    timestamp: datetime

    @classmethod
    def from_model(cls, model: TransactionModel) -> TransactionRecord:
        return cls(
            id=model.id,
            owner_id=model.owner_id,
            from_holding=_ref(model.from_holding_kind, model.from_holding_id),
            to_holding=_ref(model.to_holding_kind, model.to_holding_id),
            amount=model.amount,
            kind=_enum_value(model.kind),
            operation=model.operation,
            description=model.description,
            timestamp=model.timestamp,
        )


@dataclass(frozen=True)
class TransactionReceipt:
    """Result of a committed operation."""

    transaction_id: UUID
    operation: OperationKind
    kind: str
    amount: Decimal
    timestamp: datetime
    attempts: int = 1


@dataclass(frozen=True)
class TransactionPage:
    """One page of an owner's transaction history, newest first."""

    items: tuple[TransactionRecord, ...]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.page_size) if self.page_size else 0


@dataclass(frozen=True)
class MonthlySummary:
    """Deposits, withdrawals and transaction count since the month began."""

    since: datetime
    income: Decimal
    spending: Decimal
    count: int


def _enum_value(value: object) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _ref(kind: str | None, holding_id: UUID | None) -> HoldingRef | None:
    if kind is None or holding_id is None:
        return None
    return HoldingRef(HoldingKind(kind), holding_id)
