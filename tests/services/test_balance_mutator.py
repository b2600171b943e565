"""
Tests for BalanceMutator.

Verifies:
- Credits and debits change the balance by exactly the delta
- A debit that would go negative is rejected with nothing written
- A credit past MAX_AMOUNT is rejected with nothing written
- Deltas are not deduplicated within a unit
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import HoldingKind
from ledger_kernel.db.types import MAX_AMOUNT
from ledger_kernel.exceptions import (
    BalanceLimitExceededError,
    HoldingNotFoundError,
    InsufficientFundsError,
)
from ledger_kernel.services.balance_mutator import BalanceMutator


@pytest.fixture
def mutator(store):
    return BalanceMutator(store)


class TestApplyDelta:

    def test_credit(self, store, mutator, make_account, balance_of, owner_id):
        a = make_account(owner_id, "10.00")

        with store.unit() as unit:
            updated = mutator.apply_delta(unit, HoldingKind.ACCOUNT, a.id, Decimal("2.50"))

        assert updated.balance == Decimal("12.50")
        assert balance_of(a) == Decimal("12.50")

    def test_debit_to_zero(self, store, mutator, make_account, balance_of, owner_id):
        a = make_account(owner_id, "10.00")

        with store.unit() as unit:
            mutator.apply_delta(unit, HoldingKind.ACCOUNT, a.id, Decimal("-10.00"))

        assert balance_of(a) == Decimal("0.00")

    def test_overdraft_rejected(self, store, mutator, make_account, balance_of, owner_id):
        a = make_account(owner_id, "10.00")

        with pytest.raises(InsufficientFundsError) as exc_info:
            with store.unit() as unit:
                mutator.apply_delta(unit, HoldingKind.ACCOUNT, a.id, Decimal("-10.01"))

        assert exc_info.value.balance == "10.00"
        assert exc_info.value.requested == "10.01"
        assert balance_of(a) == Decimal("10.00")

    def test_credit_up_to_limit(self, store, mutator, make_account, balance_of, owner_id):
        a = make_account(owner_id, str(MAX_AMOUNT - Decimal("1.00")))

        with store.unit() as unit:
            mutator.apply_delta(unit, HoldingKind.ACCOUNT, a.id, Decimal("1.00"))

        assert balance_of(a) == MAX_AMOUNT

    def test_credit_past_limit_rejected(self, store, mutator, make_account, balance_of, owner_id):
        a = make_account(owner_id, str(MAX_AMOUNT))

        with pytest.raises(BalanceLimitExceededError) as exc_info:
            with store.unit() as unit:
                mutator.apply_delta(unit, HoldingKind.ACCOUNT, a.id, Decimal("0.01"))

        assert exc_info.value.code == "BALANCE_LIMIT_EXCEEDED"
        assert exc_info.value.requested == "0.01"
        assert balance_of(a) == MAX_AMOUNT

    def test_applies_twice_when_called_twice(self, store, mutator, make_account, balance_of, owner_id):
        a = make_account(owner_id, "10.00")

        with store.unit() as unit:
            mutator.apply_delta(unit, HoldingKind.ACCOUNT, a.id, Decimal("-3.00"))
            mutator.apply_delta(unit, HoldingKind.ACCOUNT, a.id, Decimal("-3.00"))

        assert balance_of(a) == Decimal("4.00")

    def test_investment_amount_is_the_balance(
        self, store, mutator, holding_service, balance_of, owner_id
    ):
        investment = holding_service.create_investment(owner_id, "fd", "5.00")

        with store.unit() as unit:
            mutator.apply_delta(unit, HoldingKind.INVESTMENT, investment.id, Decimal("1.00"))

        assert balance_of(investment) == Decimal("6.00")

    def test_missing_holding(self, store, mutator):
        with pytest.raises(HoldingNotFoundError):
            with store.unit() as unit:
                mutator.apply_delta(unit, HoldingKind.ACCOUNT, uuid4(), Decimal("1.00"))

    def test_rejected_debit_logged(self, store, mutator, make_account, captured_logs, owner_id):
        a = make_account(owner_id, "1.00")

        with pytest.raises(InsufficientFundsError):
            with store.unit() as unit:
                mutator.apply_delta(unit, HoldingKind.ACCOUNT, a.id, Decimal("-2.00"))

        rejected = [r for r in captured_logs() if r["message"] == "debit_rejected_insufficient_funds"]
        assert rejected[0]["holding_id"] == str(a.id)
        assert rejected[0]["delta"] == "-2.00"
