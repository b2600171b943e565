"""
Module: ledger_kernel.models.loan
Responsibility: ORM persistence for loans.  ``amount`` is the principal;
    disbursement is the only money movement implemented for loans.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount >= 0 (CHECK constraint ck_loan_amount_non_negative).
    - status follows PENDING -> APPROVED -> ACTIVE -> CLOSED.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import OwnedBase
from ledger_kernel.db.types import FixedDecimal


class LoanType(str, Enum):
    """Loan products."""

    HOME = "home"
    CAR = "car"
    PERSONAL = "personal"


class LoanStatus(str, Enum):
    """Loan lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    CLOSED = "closed"


# Annual rate in percent, fixed per product
LOAN_INTEREST_RATES: dict[LoanType, Decimal] = {
    LoanType.HOME: Decimal("4.50"),
    LoanType.CAR: Decimal("6.50"),
    LoanType.PERSONAL: Decimal("9.50"),
}


class Loan(OwnedBase):
    """A loan owned by one customer."""

    __tablename__ = "loans"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_loan_amount_non_negative"),
        CheckConstraint("term_months > 0", name="ck_loan_term_positive"),
    )

    loan_type: Mapped[LoanType] = mapped_column(
        String(20),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    interest_rate: Mapped[Decimal] = mapped_column(
        FixedDecimal(),
        nullable=False,
    )

    term_months: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    status: Mapped[LoanStatus] = mapped_column(
        String(20),
        nullable=False,
        default=LoanStatus.PENDING.value,
    )

    next_due_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Loan {self.id} {self.loan_type} {self.status} amount={self.amount}>"
