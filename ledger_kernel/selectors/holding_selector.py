"""
Module: ledger_kernel.selectors.holding_selector
Responsibility: Read-only listing of an owner's accounts, investments and
    loans, plus the dashboard's primary balance.
Architecture position: Kernel > Selectors.

Failure modes:
    - Returns empty tuples / 0.00 when the owner holds nothing (never raises
      on absence of data).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.dtos import Holding, HoldingKind, InvestmentDetail, LoanDetail
from ledger_kernel.models.account import Account
from ledger_kernel.models.investment import Investment
from ledger_kernel.models.loan import Loan
from ledger_kernel.selectors.base import BaseSelector


class HoldingSelector(BaseSelector):
    """Selector for holdings owned by one owner."""

    def list_accounts(self, owner_id: UUID) -> tuple[Holding, ...]:
        """Accounts in creation order."""
        stmt = (
            select(Account)
            .where(Account.owner_id == owner_id)
            .order_by(Account.created_at, Account.id)
        )
        with self._read() as session:
            rows = session.execute(stmt).scalars().all()
            return tuple(Holding.from_model(HoldingKind.ACCOUNT, row) for row in rows)

    def list_investments(self, owner_id: UUID) -> tuple[InvestmentDetail, ...]:
        """Investments, newest first."""
        stmt = (
            select(Investment)
            .where(Investment.owner_id == owner_id)
            .order_by(Investment.created_at.desc(), Investment.id.desc())
        )
        with self._read() as session:
            rows = session.execute(stmt).scalars().all()
            return tuple(InvestmentDetail.from_model(row) for row in rows)

    def list_loans(self, owner_id: UUID) -> tuple[LoanDetail, ...]:
        """Loans, newest first."""
        stmt = (
            select(Loan)
            .where(Loan.owner_id == owner_id)
            .order_by(Loan.created_at.desc(), Loan.id.desc())
        )
        with self._read() as session:
            rows = session.execute(stmt).scalars().all()
            return tuple(LoanDetail.from_model(row) for row in rows)

    def primary_balance(self, owner_id: UUID) -> Decimal:
        """Balance of the owner's first account, or 0.00 if none exists."""
        stmt = (
            select(Account.balance)
            .where(Account.owner_id == owner_id)
            .order_by(Account.created_at, Account.id)
            .limit(1)
        )
        with self._read() as session:
            balance = session.execute(stmt).scalar_one_or_none()
        return balance if balance is not None else ZERO
