"""
Tests for LedgerStore units.

Verifies:
- commit makes writes durable; abort discards them
- Units cannot be reused after they finish
- Timestamps round-trip as aware UTC datetimes
- Driver errors are translated to ConflictError / StoreUnavailableError
- A unit waiting on another unit's lock times out with ConflictError
"""

import sqlite3
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from ledger_kernel.db.engine import create_ledger_engine
from ledger_kernel.db.store import LedgerStore, UnitState, is_conflict
from ledger_kernel.domain.dtos import HoldingKind
from ledger_kernel.exceptions import ConflictError, StoreUnavailableError, UnitClosedError


class TestUnits:

    def test_commit_persists(self, store, make_account, balance_of, owner_id):
        a = make_account(owner_id, "1.00")

        unit = store.begin_unit()
        store.write_holding(unit, HoldingKind.ACCOUNT, a.id, balance=Decimal("9.00"))
        store.commit(unit)

        assert unit.state == UnitState.COMMITTED
        assert balance_of(a) == Decimal("9.00")

    def test_abort_discards(self, store, make_account, balance_of, owner_id):
        a = make_account(owner_id, "1.00")

        unit = store.begin_unit()
        store.write_holding(unit, HoldingKind.ACCOUNT, a.id, balance=Decimal("9.00"))
        store.abort(unit)
        store.abort(unit)

        assert unit.state == UnitState.ABORTED
        assert balance_of(a) == Decimal("1.00")

    def test_read_only_unit_never_commits(self, store, make_account, balance_of, owner_id):
        a = make_account(owner_id, "1.00")

        with store.unit(read_only=True) as unit:
            store.write_holding(unit, HoldingKind.ACCOUNT, a.id, balance=Decimal("9.00"))

        assert balance_of(a) == Decimal("1.00")

    def test_exception_aborts_unit(self, store, make_account, balance_of, owner_id):
        a = make_account(owner_id, "1.00")

        with pytest.raises(RuntimeError):
            with store.unit() as unit:
                store.write_holding(unit, HoldingKind.ACCOUNT, a.id, balance=Decimal("9.00"))
                raise RuntimeError("boom")

        assert unit.state == UnitState.ABORTED
        assert balance_of(a) == Decimal("1.00")

    def test_closed_unit_rejected(self, store, make_account, owner_id):
        a = make_account(owner_id)
        unit = store.begin_unit()
        store.commit(unit)

        with pytest.raises(UnitClosedError):
            store.read_holding(unit, HoldingKind.ACCOUNT, a.id)
        with pytest.raises(UnitClosedError):
            store.commit(unit)

    def test_missing_holding_reads_none(self, store):
        from uuid import uuid4

        with store.unit(read_only=True) as unit:
            assert store.read_holding(unit, HoldingKind.LOAN, uuid4()) is None

    def test_timestamps_are_aware_utc(self, store, make_account, clock, owner_id):
        a = make_account(owner_id)

        with store.unit(read_only=True) as unit:
            holding = store.read_holding(unit, HoldingKind.ACCOUNT, a.id)

        assert holding.created_at == clock.now()
        assert holding.created_at.tzinfo is not None


class TestEngine:

    def test_in_memory_sqlite_rejected(self):
        with pytest.raises(ValueError, match="file-backed"):
            create_ledger_engine("sqlite://")
        with pytest.raises(ValueError, match="file-backed"):
            create_ledger_engine("sqlite:///:memory:")


class TestErrorTranslation:

    @pytest.mark.parametrize(
        "message, conflict",
        [
            ("database is locked", True),
            ("deadlock detected", True),
            ("disk I/O error", False),
            ("unable to open database file", False),
        ],
    )
    def test_is_conflict(self, message, conflict):
        exc = OperationalError("BEGIN", {}, sqlite3.OperationalError(message))
        assert is_conflict(exc) is conflict

    def test_operational_errors_translated(self, store):
        unit = store.begin_unit()
        try:
            with pytest.raises(ConflictError):
                with store._translate_errors(unit, "test"):
                    raise OperationalError("x", {}, sqlite3.OperationalError("database is locked"))
            with pytest.raises(StoreUnavailableError):
                with store._translate_errors(unit, "test"):
                    raise OperationalError("x", {}, sqlite3.OperationalError("disk I/O error"))
        finally:
            store.abort(unit)


class TestLockTimeout:

    def test_waiting_unit_times_out_with_conflict(self, engine, database_url, clock):
        if engine.dialect.name != "sqlite":
            pytest.skip("exercises SQLite BEGIN IMMEDIATE locking")

        holder = LedgerStore(engine, clock=clock)
        impatient_engine = create_ledger_engine(database_url, lock_timeout_seconds=0.2)
        impatient = LedgerStore(impatient_engine, clock=clock, lock_timeout_seconds=0.2)

        unit = holder.begin_unit()
        try:
            with pytest.raises(ConflictError):
                impatient.begin_unit()
        finally:
            holder.abort(unit)
            impatient.dispose()
