"""
Pytest fixtures for the ledger kernel test suite.

Provides:
- A file-backed SQLite ledger store per test (fresh schema, real pooling,
  BEGIN IMMEDIATE unit locking)
- Service, orchestrator and selector fixtures wired to a DeterministicClock
- Helpers to seed holdings and read balances
- Structured log capture

Environment Variables:
- LEDGER_TEST_DATABASE_URL: run against another database (e.g. PostgreSQL)
  instead of a per-test SQLite file.  Tables are dropped after each test.
"""

import json
import logging
import os
from decimal import Decimal
from io import StringIO
from typing import Callable
from uuid import UUID, uuid4

import pytest

from ledger_kernel.db.engine import create_ledger_engine, create_tables, drop_tables
from ledger_kernel.db.store import LedgerStore
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import Holding, HoldingKind
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.selectors.holding_selector import HoldingSelector
from ledger_kernel.selectors.transaction_selector import TransactionSelector
from ledger_kernel.services.holding_service import HoldingService
from ledger_kernel.services.transfer_orchestrator import TransferOrchestrator

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.deposit(...)
            logs = captured_logs()
            assert any(r["message"] == "operation_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Store fixtures
# =============================================================================


@pytest.fixture
def clock():
    """Deterministic clock at 2024-01-15 12:00 UTC."""
    return DeterministicClock()


@pytest.fixture
def database_url(tmp_path):
    return os.environ.get("LEDGER_TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def engine(database_url):
    engine = create_ledger_engine(
        database_url,
        pool_size=8,
        max_overflow=4,
        pool_timeout=10,
        lock_timeout_seconds=10.0,
    )
    create_tables(engine)
    yield engine
    if engine.dialect.name != "sqlite":
        drop_tables(engine)
    engine.dispose()


@pytest.fixture
def store(engine, clock):
    store = LedgerStore(engine, clock=clock, lock_timeout_seconds=10.0)
    yield store
    store.dispose()


@pytest.fixture
def holding_service(store):
    return HoldingService(store)


@pytest.fixture
def orchestrator(store):
    return TransferOrchestrator(store, retry_backoff_seconds=0.001)


@pytest.fixture
def transaction_selector(store):
    return TransactionSelector(store, default_page_size=20, max_page_size=100)


@pytest.fixture
def holding_selector(store):
    return HoldingSelector(store)


# =============================================================================
# Data helpers
# =============================================================================


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def set_balance(store) -> Callable[[HoldingKind, UUID, str], Holding]:
    """Write a balance directly, without an audit record (test setup only)."""

    def _set(kind: HoldingKind, holding_id: UUID, balance: str) -> Holding:
        with store.unit() as unit:
            return store.write_holding(unit, kind, holding_id, balance=Decimal(balance))

    return _set


@pytest.fixture
def make_account(holding_service, set_balance) -> Callable[..., Holding]:
    """
    Open an account and seed its balance.

    Usage::

        account = make_account(owner_id, "100.00")
    """

    def _make(owner: UUID, balance: str = "0.00", account_type: str = "Checking") -> Holding:
        holding = holding_service.open_account(owner, account_type)
        if Decimal(balance) != 0:
            holding = set_balance(HoldingKind.ACCOUNT, holding.id, balance)
        return holding

    return _make


@pytest.fixture
def balance_of(store) -> Callable[[HoldingKind | Holding, UUID | None], Decimal]:
    """Current balance of a holding, read in its own unit."""

    def _balance(kind_or_holding, holding_id: UUID | None = None) -> Decimal:
        if isinstance(kind_or_holding, Holding):
            kind, holding_id = kind_or_holding.kind, kind_or_holding.id
        else:
            kind = kind_or_holding
        with store.unit(read_only=True) as unit:
            return store.read_holding(unit, kind, holding_id, for_update=False).balance

    return _balance
