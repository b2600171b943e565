"""
HoldingService -- creation and lifecycle of holdings.

Responsibility:
    Opens accounts, creates investments, records loan applications and loan
    approvals.  None of these move money between holdings, so none of them
    write a Transaction record.

Architecture position:
    Kernel > Services -- imperative shell.  Uses LedgerStore units directly;
    money movement stays with the Transfer Orchestrator.

Invariants enforced:
    - Holdings are created with owner_id fixed for life.
    - Accounts start at 0.00; investments at a non-negative amount;
      loans at a positive principal.
    - Loans move PENDING -> APPROVED here and APPROVED -> ACTIVE only via
      TransferOrchestrator.disburse_loan().

Failure modes:
    - InvalidHoldingTypeError: unknown account/investment/loan type string.
    - InvalidAmountError: malformed or out-of-range amount.
    - InvalidHoldingStateError: approve_loan() on a non-pending loan.
    - HoldingNotFoundError / UnauthorizedHoldingError: approve_loan() on a
      missing or foreign loan.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TypeVar
from uuid import UUID

from ledger_kernel.db.store import LedgerStore
from ledger_kernel.db.types import parse_amount
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import Holding, HoldingKind
from ledger_kernel.exceptions import InvalidHoldingStateError, InvalidHoldingTypeError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.investment import Investment, InvestmentStatus, InvestmentType
from ledger_kernel.models.loan import LOAN_INTEREST_RATES, Loan, LoanStatus, LoanType
from ledger_kernel.services.holding_registry import HoldingRegistry

logger = get_logger("services.holding_service")

_E = TypeVar("_E", bound=Enum)


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _coerce(enum_cls: type[_E], value: _E | str, holding_kind: str) -> _E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidHoldingTypeError(holding_kind, str(value)) from None


class HoldingService:
    """
    Creates holdings and advances loan status.

    Non-goals:
        - No underwriting: approve_loan() records a decision made elsewhere.
        - No interest accrual or repayment schedules.
    """

    def __init__(self, store: LedgerStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or store.clock
        self._registry = HoldingRegistry(store)

    def register_owner(self, owner_id: UUID) -> Holding:
        """Open the default Checking account a new owner starts with."""
        with LogContext.bind(owner_id=str(owner_id), operation="register_owner"):
            holding = self.open_account(owner_id, AccountType.CHECKING)
            logger.info("owner_registered", extra={"account_id": str(holding.id)})
            return holding

    def open_account(self, owner_id: UUID, account_type: AccountType | str) -> Holding:
        """Open an account with a zero balance."""
        account_type = _coerce(AccountType, account_type, HoldingKind.ACCOUNT.value)
        with self._store.unit() as unit:
            holding = self._store.insert_holding(
                unit,
                Account(
                    owner_id=owner_id,
                    account_type=account_type.value,
                    balance=Decimal("0.00"),
                    created_at=self._clock.now(),
                ),
            )
        logger.info(
            "account_opened",
            extra={"account_id": str(holding.id), "account_type": account_type.value},
        )
        return holding

    def create_investment(
        self,
        owner_id: UUID,
        investment_type: InvestmentType | str,
        amount: object,
        term_months: int | None = None,
        interest_rate: object = None,
    ) -> Holding:
        """
        Create an active investment holding.

        The initial amount is recorded as given; it is not drawn from any
        account.  Use TransferOrchestrator.fund_investment() to move money
        in from an account.
        """
        investment_type = _coerce(
            InvestmentType, investment_type, HoldingKind.INVESTMENT.value
        )
        initial = parse_amount(amount, allow_zero=True)
        rate = parse_amount(interest_rate, allow_zero=True) if interest_rate is not None else None
        if term_months is not None and term_months <= 0:
            raise ValueError(f"term_months must be positive, got {term_months}")

        with self._store.unit() as unit:
            holding = self._store.insert_holding(
                unit,
                Investment(
                    owner_id=owner_id,
                    investment_type=investment_type.value,
                    amount=initial,
                    interest_rate=rate,
                    term_months=term_months,
                    status=InvestmentStatus.ACTIVE.value,
                    created_at=self._clock.now(),
                ),
            )
        logger.info(
            "investment_created",
            extra={
                "investment_id": str(holding.id),
                "investment_type": investment_type.value,
                "amount": initial,
            },
        )
        return holding

    def apply_for_loan(
        self,
        owner_id: UUID,
        loan_type: LoanType | str,
        amount: object,
        term_months: int,
    ) -> Holding:
        """Record a pending loan application at the product's fixed rate."""
        loan_type = _coerce(LoanType, loan_type, HoldingKind.LOAN.value)
        principal = parse_amount(amount)
        if term_months <= 0:
            raise ValueError(f"term_months must be positive, got {term_months}")

        now = self._clock.now()
        with self._store.unit() as unit:
            holding = self._store.insert_holding(
                unit,
                Loan(
                    owner_id=owner_id,
                    loan_type=loan_type.value,
                    amount=principal,
                    interest_rate=LOAN_INTEREST_RATES[loan_type],
                    term_months=term_months,
                    status=LoanStatus.PENDING.value,
                    next_due_date=add_months(now.date(), 1),
                    created_at=now,
                ),
            )
        logger.info(
            "loan_applied",
            extra={
                "loan_id": str(holding.id),
                "loan_type": loan_type.value,
                "amount": principal,
                "term_months": term_months,
            },
        )
        return holding

    def approve_loan(self, owner_id: UUID, loan_id: UUID) -> Holding:
        """Move a pending loan to approved."""
        with self._store.unit() as unit:
            loan = self._registry.resolve(unit, owner_id, loan_id, HoldingKind.LOAN)
            if loan.status != LoanStatus.PENDING.value:
                raise InvalidHoldingStateError(
                    HoldingKind.LOAN.value,
                    str(loan_id),
                    str(loan.status),
                    (LoanStatus.PENDING.value,),
                )
            holding = self._store.write_holding(
                unit, HoldingKind.LOAN, loan_id, status=LoanStatus.APPROVED.value
            )
        logger.info("loan_approved", extra={"loan_id": str(loan_id)})
        return holding
