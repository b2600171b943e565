"""
True concurrency tests against the ledger store.

Threads released together by a Barrier race on the same holdings.  Each
thread gets its own pooled connection, so the store's unit locking is the
only thing standing between them.

Verifies:
- Two withdrawals that each fit but together overdraw: exactly one wins
- Opposing transfers between the same pair neither deadlock nor leak money
- Concurrent deposits are all applied
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from ledger_kernel.exceptions import InsufficientFundsError

pytestmark = pytest.mark.slow


def _race(workers, fn, *args_per_worker):
    """Run fn once per args tuple, all released at the same instant."""
    barrier = Barrier(workers)

    def _run(args):
        barrier.wait()
        try:
            return ("ok", fn(*args))
        except InsufficientFundsError as exc:
            return ("insufficient", exc)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(_run, args_per_worker))


class TestConcurrentWithdrawals:

    def test_exactly_one_of_two_overdrawing_withdrawals_wins(
        self, orchestrator, make_account, balance_of, transaction_selector, owner_id
    ):
        a = make_account(owner_id, "100.00")

        outcomes = _race(
            2,
            orchestrator.withdraw,
            (owner_id, a.id, Decimal("70.00")),
            (owner_id, a.id, Decimal("70.00")),
        )

        statuses = sorted(status for status, _ in outcomes)
        assert statuses == ["insufficient", "ok"]
        assert balance_of(a) == Decimal("30.00")
        assert transaction_selector.list_transactions(owner_id).total == 1

    def test_many_withdrawals_never_overdraw(
        self, orchestrator, make_account, balance_of, transaction_selector, owner_id
    ):
        a = make_account(owner_id, "50.00")
        workers = 8

        outcomes = _race(workers, orchestrator.withdraw, *[(owner_id, a.id, "10.00")] * workers)

        wins = sum(1 for status, _ in outcomes if status == "ok")
        assert wins == 5
        assert balance_of(a) == Decimal("0.00")
        assert transaction_selector.list_transactions(owner_id).total == 5


class TestConcurrentTransfers:

    def test_opposing_transfers_conserve_total(
        self, orchestrator, make_account, balance_of, owner_id
    ):
        a = make_account(owner_id, "100.00")
        b = make_account(owner_id, "100.00")
        workers = 8
        args = [
            (owner_id, a.id, b.id, "7.00") if i % 2 == 0 else (owner_id, b.id, a.id, "3.00")
            for i in range(workers)
        ]

        outcomes = _race(workers, orchestrator.transfer, *args)

        assert all(status == "ok" for status, _ in outcomes)
        assert balance_of(a) == Decimal("84.00")
        assert balance_of(b) == Decimal("116.00")

    def test_concurrent_deposits_all_applied(
        self, orchestrator, make_account, balance_of, owner_id
    ):
        a = make_account(owner_id)
        workers = 6

        outcomes = _race(workers, orchestrator.deposit, *[(owner_id, a.id, "1.25")] * workers)

        assert all(status == "ok" for status, _ in outcomes)
        assert balance_of(a) == Decimal("7.50")
