"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for customer accounts, the primary
    balance-bearing holding.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - balance >= 0 (CHECK constraint ck_account_balance_non_negative, in
      addition to the Balance Mutator's own check).
    - owner_id never changes after creation.

Failure modes:
    - IntegrityError if a write would store a negative balance, which means
      a caller bypassed the Balance Mutator.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import OwnedBase


class AccountType(str, Enum):
    """Types of customer accounts."""

    CHECKING = "Checking"
    SAVINGS = "Savings"
    INVESTMENT = "Investment"


class Account(OwnedBase):
    """
    A customer account.

    Contract:
        balance is mutated only by the Balance Mutator inside a unit.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_account_balance_non_negative"),
        Index("idx_account_owner_created", "owner_id", "created_at"),
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    balance: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )

    def __repr__(self) -> str:
        return f"<Account {self.id} {self.account_type} balance={self.balance}>"
