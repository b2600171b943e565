"""
Module: ledger_kernel.models.investment
Responsibility: ORM persistence for investments.  The ``amount`` column is
    balance-like: funded by transfers in, drained by withdrawals.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount >= 0 (CHECK constraint ck_investment_amount_non_negative).
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import OwnedBase
from ledger_kernel.db.types import FixedDecimal


class InvestmentType(str, Enum):
    """Investment products."""

    FIXED_DEPOSIT = "fd"
    MUTUAL_FUND = "mutual_fund"
    STOCK = "stock"


class InvestmentStatus(str, Enum):
    """Investment lifecycle status."""

    ACTIVE = "active"
    MATURED = "matured"
    CLOSED = "closed"


class Investment(OwnedBase):
    """An investment holding owned by one customer."""

    __tablename__ = "investments"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_investment_amount_non_negative"),
    )

    investment_type: Mapped[InvestmentType] = mapped_column(
        String(20),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )

    # Percent per annum, informational only (no accrual in the kernel)
    interest_rate: Mapped[Decimal | None] = mapped_column(
        FixedDecimal(),
        nullable=True,
    )

    term_months: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    status: Mapped[InvestmentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InvestmentStatus.ACTIVE.value,
    )

    def __repr__(self) -> str:
        return f"<Investment {self.id} {self.investment_type} amount={self.amount}>"
