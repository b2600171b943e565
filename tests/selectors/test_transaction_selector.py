"""
Tests for TransactionSelector.

Verifies:
- Newest-first ordering with stable paging
- Repeated reads return identical results
- Page bounds are enforced
- Month-to-date summary follows the clock
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ledger_kernel.exceptions import InvalidPageError


@pytest.fixture
def funded(make_account, owner_id):
    return make_account(owner_id, "1000.00")


def _deposits(orchestrator, clock, owner_id, account, count):
    receipts = []
    for i in range(count):
        clock.advance(60)
        receipts.append(orchestrator.deposit(owner_id, account.id, f"{i + 1}.00"))
    return receipts


class TestListTransactions:

    def test_newest_first(self, orchestrator, transaction_selector, clock, funded, owner_id):
        receipts = _deposits(orchestrator, clock, owner_id, funded, 3)

        page = transaction_selector.list_transactions(owner_id)

        assert [r.id for r in page.items] == [r.transaction_id for r in reversed(receipts)]
        assert page.total == 3
        assert page.page == 0

    def test_paging(self, orchestrator, transaction_selector, clock, funded, owner_id):
        receipts = _deposits(orchestrator, clock, owner_id, funded, 5)
        newest_first = [r.transaction_id for r in reversed(receipts)]

        first = transaction_selector.list_transactions(owner_id, page=0, page_size=2)
        second = transaction_selector.list_transactions(owner_id, page=1, page_size=2)
        third = transaction_selector.list_transactions(owner_id, page=2, page_size=2)
        beyond = transaction_selector.list_transactions(owner_id, page=3, page_size=2)

        assert [r.id for r in first.items + second.items + third.items] == newest_first
        assert first.total_pages == 3
        assert beyond.items == ()
        assert beyond.total == 5

    def test_same_timestamp_order_is_stable(self, orchestrator, transaction_selector, funded, owner_id):
        for _ in range(4):
            orchestrator.deposit(owner_id, funded.id, "1.00")

        ids = [r.id for r in transaction_selector.list_transactions(owner_id).items]

        assert ids == sorted(ids, key=str, reverse=True)

    def test_idempotent_read(self, orchestrator, transaction_selector, clock, funded, owner_id):
        _deposits(orchestrator, clock, owner_id, funded, 3)

        first = transaction_selector.list_transactions(owner_id, page=0, page_size=2)
        second = transaction_selector.list_transactions(owner_id, page=0, page_size=2)

        assert first == second

    def test_other_owners_excluded(
        self, orchestrator, transaction_selector, make_account, funded, owner_id, other_owner_id
    ):
        theirs = make_account(other_owner_id)
        orchestrator.deposit(other_owner_id, theirs.id, "5.00")

        assert transaction_selector.list_transactions(owner_id).total == 0
        assert transaction_selector.list_transactions(other_owner_id).total == 1

    @pytest.mark.parametrize("page, page_size", [(-1, 10), (0, 0), (0, 101)])
    def test_invalid_page(self, transaction_selector, owner_id, page, page_size):
        with pytest.raises(InvalidPageError) as exc_info:
            transaction_selector.list_transactions(owner_id, page=page, page_size=page_size)
        assert exc_info.value.code == "INVALID_PAGE"

    def test_recent_transactions(self, orchestrator, transaction_selector, clock, funded, owner_id):
        receipts = _deposits(orchestrator, clock, owner_id, funded, 7)

        recent = transaction_selector.recent_transactions(owner_id)

        assert len(recent) == 5
        assert recent[0].id == receipts[-1].transaction_id


class TestMonthlySummary:

    def test_summary(self, orchestrator, transaction_selector, make_account, clock, funded, owner_id):
        other = make_account(owner_id)

        # Last month: excluded
        clock.set_time(datetime(2024, 1, 31, 23, 59, tzinfo=timezone.utc))
        orchestrator.deposit(owner_id, funded.id, "500.00")

        clock.set_time(datetime(2024, 2, 1, 0, 0, tzinfo=timezone.utc))
        orchestrator.deposit(owner_id, funded.id, "100.00")
        clock.advance(10)
        orchestrator.deposit(owner_id, funded.id, "20.50")
        clock.advance(10)
        orchestrator.withdraw(owner_id, funded.id, "30.25")
        clock.advance(10)
        orchestrator.transfer(owner_id, funded.id, other.id, "5.00")

        summary = transaction_selector.monthly_summary(owner_id)

        assert summary.since == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert summary.income == Decimal("120.50")
        assert summary.spending == Decimal("30.25")
        assert summary.count == 4

    def test_empty_month(self, transaction_selector, owner_id):
        summary = transaction_selector.monthly_summary(owner_id)

        assert summary.income == Decimal("0.00")
        assert summary.spending == Decimal("0.00")
        assert summary.count == 0
