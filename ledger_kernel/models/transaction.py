"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for the append-only audit record written once
    per committed money movement.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount > 0 (CHECK constraint ck_transaction_amount_positive).
    - Immutable once written: updates and deletes are rejected by the ORM
      listeners in db/immutability.py.
    - Exactly one row per committed operation (written by the orchestrator
      inside the same unit as the balance legs).

Audit relevance:
    A reader can never observe mutated balances without the corresponding
    Transaction row, or a Transaction row without its balance changes.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class TransactionKind(str, Enum):
    """Recorded kind of a money movement."""

    TRANSFER = "transfer"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class Transaction(Base):
    """
    Audit record of a single committed operation.

    Contract:
        Written exactly once by the Transfer Orchestrator; never updated or
        deleted.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        Index("idx_transaction_owner_ts", "owner_id", "timestamp"),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    from_holding_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    from_holding_kind: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    to_holding_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    to_holding_kind: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    kind: Mapped[TransactionKind] = mapped_column(
        String(20),
        nullable=False,
    )

    # OperationKind that produced the record (e.g. "fund_investment")
    operation: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )

    timestamp: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.id} {self.kind} {self.amount}>"
