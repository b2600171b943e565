"""
Module: ledger_kernel.selectors.transaction_selector
Responsibility: Read-only access to an owner's transaction history: paged
    listing, the recent-activity feed and the month-to-date summary.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Ordering is newest first by timestamp, ties broken by id descending,
      so pages are stable for a fixed set of rows.
    - Idempotent: with no intervening commits, repeated calls return equal
      results.

Failure modes:
    - InvalidPageError: negative page, page_size < 1 or above the
      configured maximum.

Audit relevance:
    Transactions are listed for the owner that initiated them.  A transfer
    credited to another owner's account appears in the sender's history.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.db.store import LedgerStore
from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.dtos import MonthlySummary, TransactionPage, TransactionRecord
from ledger_kernel.exceptions import InvalidPageError
from ledger_kernel.models.transaction import Transaction, TransactionKind
from ledger_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
RECENT_LIMIT = 5


class TransactionSelector(BaseSelector):
    """Selector for transaction history."""

    def __init__(
        self,
        store: LedgerStore,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        super().__init__(store)
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    @classmethod
    def from_settings(cls, store: LedgerStore, settings) -> "TransactionSelector":
        return cls(
            store,
            default_page_size=settings.default_page_size,
            max_page_size=settings.max_page_size,
        )

    def list_transactions(
        self,
        owner_id: UUID,
        page: int = 0,
        page_size: int | None = None,
    ) -> TransactionPage:
        """
        One page of the owner's history, newest first.

        Args:
            owner_id: Owner whose history to list.
            page: 0-based page index.
            page_size: Rows per page (defaults to default_page_size).

        Raises:
            InvalidPageError: If page or page_size is out of range.
        """
        if page_size is None:
            page_size = self.default_page_size
        if page < 0 or page_size < 1 or page_size > self.max_page_size:
            raise InvalidPageError(page, page_size, self.max_page_size)

        count_stmt = select(func.count()).select_from(Transaction).where(
            Transaction.owner_id == owner_id
        )
        rows_stmt = (
            select(Transaction)
            .where(Transaction.owner_id == owner_id)
            .order_by(Transaction.timestamp.desc(), Transaction.id.desc())
            .offset(page * page_size)
            .limit(page_size)
        )
        with self._read() as session:
            total = session.execute(count_stmt).scalar_one()
            rows = session.execute(rows_stmt).scalars().all()
            items = tuple(TransactionRecord.from_model(row) for row in rows)

        return TransactionPage(items=items, total=total, page=page, page_size=page_size)

    def recent_transactions(
        self,
        owner_id: UUID,
        limit: int = RECENT_LIMIT,
    ) -> tuple[TransactionRecord, ...]:
        """The owner's ``limit`` most recent transactions."""
        return self.list_transactions(owner_id, page=0, page_size=limit).items

    def monthly_summary(self, owner_id: UUID) -> MonthlySummary:
        """
        Month-to-date totals per the store's clock.

        income sums Deposit amounts, spending sums Withdrawal amounts, count
        covers every kind (transfers included).
        """
        since = self._month_start(self.store.clock.now())
        base = (Transaction.owner_id == owner_id, Transaction.timestamp >= since)

        with self._read() as session:
            totals = dict(
                session.execute(
                    select(Transaction.kind, func.sum(Transaction.amount))
                    .where(*base)
                    .group_by(Transaction.kind)
                ).all()
            )
            count = session.execute(
                select(func.count()).select_from(Transaction).where(*base)
            ).scalar_one()

        return MonthlySummary(
            since=since,
            income=totals.get(TransactionKind.DEPOSIT.value) or ZERO,
            spending=totals.get(TransactionKind.WITHDRAWAL.value) or ZERO,
            count=count,
        )

    @staticmethod
    def _month_start(now: datetime) -> datetime:
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
