"""
Module: ledger_kernel.db.store
Responsibility: The Ledger Store -- keyed storage for holdings and audit
    records with grouping of reads and writes into atomic units.
Architecture position: Kernel > DB.  May import from db/, models/ and
    domain/dtos.py.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - Atomicity: everything done through one UnitHandle is committed together
      or discarded together.  abort() leaves the store exactly as it was.
    - Isolation: holding reads inside a unit take a row lock
      (SELECT ... FOR UPDATE on PostgreSQL, the unit-wide write lock on
      SQLite), so a conflicting unit blocks until this one finishes.
    - Bounded waits: lock waits stop after lock_timeout_seconds and surface
      as ConflictError.
    - Explicit handle: one LedgerStore is built per engine and passed to
      every service; there is no hidden global.

Failure modes:
    - ConflictError: lock timeout, deadlock, serialization failure or
      connection-pool exhaustion.
    - StoreUnavailableError: any other operational/connection error,
      including failures during commit (the database discards the unit).
    - UnitClosedError: a unit is used after commit or abort.
    - HoldingNotFoundError: write_holding() on a missing row.

Audit relevance:
    insert_transaction() is the only write path for Transaction rows, and it
    is always called inside the same unit as the balance writes it records.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Generator
from uuid import UUID, uuid4

from sqlalchemy import select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import Holding, HoldingKind, TransactionRecord
from ledger_kernel.exceptions import (
    ConflictError,
    HoldingNotFoundError,
    LedgerKernelError,
    StoreUnavailableError,
    UnitClosedError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.investment import Investment
from ledger_kernel.models.loan import Loan
from ledger_kernel.models.transaction import Transaction

logger = get_logger("db.store")

_MODELS: dict[HoldingKind, type[Account] | type[Investment] | type[Loan]] = {
    HoldingKind.ACCOUNT: Account,
    HoldingKind.INVESTMENT: Investment,
    HoldingKind.LOAN: Loan,
}

# Column that carries the balance-like value for each holding kind
_BALANCE_COLUMNS: dict[HoldingKind, str] = {
    HoldingKind.ACCOUNT: "balance",
    HoldingKind.INVESTMENT: "amount",
    HoldingKind.LOAN: "amount",
}

# serialization_failure, deadlock_detected, lock_not_available
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
_CONFLICT_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "lock timeout",
    "could not serialize",
)


class UnitState(str, Enum):
    """Lifecycle of a unit handle."""

    OPEN = "open"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass(eq=False)
class UnitHandle:
    """
    One atomic unit of reads and writes.

    Contract:
        Created by LedgerStore.begin_unit(); finished by exactly one of
        commit() or abort().  The session is private to the unit and never
        shared between threads.
    """

    session: Session
    id: UUID = field(default_factory=uuid4)
    state: UnitState = UnitState.OPEN
    started_at: float = field(default_factory=time.monotonic)

    def ensure_open(self) -> None:
        if self.state != UnitState.OPEN:
            raise UnitClosedError(str(self.id), self.state.value)


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_conflict(exc: DBAPIError) -> bool:
    """True when a driver error means 'another unit holds the lock'."""
    if _sqlstate(exc) in _CONFLICT_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in _CONFLICT_MARKERS)


class LedgerStore:
    """
    Durable holding and transaction storage with atomic units.

    Contract:
        begin_unit() -> UnitHandle; commit(unit); abort(unit);
        read_holding(unit, kind, id) -> Holding | None;
        write_holding(unit, kind, id, ...) -> Holding;
        insert_transaction(unit, record) -> TransactionRecord.

    Guarantees:
        - Safe for concurrent callers: each unit gets its own pooled
          connection.
        - Holding rows read inside a unit stay locked until the unit ends.

    Non-goals:
        - Does NOT check balances or ownership (Balance Mutator and Holding
          Registry do).
        - Does NOT retry; ConflictError is retried by the orchestrator.
    """

    def __init__(
        self,
        engine: Engine,
        clock: Clock | None = None,
        lock_timeout_seconds: float = 5.0,
    ):
        self._engine = engine
        self._clock = clock or SystemClock()
        self._lock_timeout_ms = max(1, int(lock_timeout_seconds * 1000))
        self._session_factory: sessionmaker[Session] = sessionmaker(
            bind=engine,
            expire_on_commit=False,
        )
        register_immutability_listeners()

    @classmethod
    def from_settings(cls, settings, clock: Clock | None = None) -> LedgerStore:
        """Build an engine and store from LedgerSettings."""
        from ledger_kernel.db.engine import create_ledger_engine

        engine = create_ledger_engine(
            settings.database_url,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            lock_timeout_seconds=settings.lock_timeout_seconds,
        )
        return cls(engine, clock=clock, lock_timeout_seconds=settings.lock_timeout_seconds)

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def clock(self) -> Clock:
        return self._clock

    def dispose(self) -> None:
        """Release all pooled connections."""
        self._engine.dispose()

    # ------------------------------------------------------------------
    # Unit lifecycle
    # ------------------------------------------------------------------

    def begin_unit(self) -> UnitHandle:
        """
        Open a unit.

        May block while another unit holds the database write lock (SQLite)
        and raises ConflictError when the wait exceeds the lock timeout.
        """
        session = self._session_factory()
        unit = UnitHandle(session=session)
        try:
            with self._translate_errors(unit, "begin"):
                # Starts the database transaction now, not on first read
                session.connection()
                if self._engine.dialect.name == "postgresql":
                    session.execute(
                        text(f"SET LOCAL lock_timeout = '{self._lock_timeout_ms}ms'")
                    )
        except LedgerKernelError:
            unit.state = UnitState.ABORTED
            session.close()
            raise
        logger.debug("unit_begun", extra={"unit_id": str(unit.id)})
        return unit

    def commit(self, unit: UnitHandle) -> None:
        """
        Commit a unit.

        Postconditions: on success every write of the unit is durable; on
            failure nothing of the unit is visible and the unit is ABORTED.
        """
        unit.ensure_open()
        try:
            with self._translate_errors(unit, "commit"):
                unit.session.commit()
        except LedgerKernelError:
            self.abort(unit)
            raise
        unit.state = UnitState.COMMITTED
        unit.session.close()
        logger.debug(
            "unit_committed",
            extra={
                "unit_id": str(unit.id),
                "duration_ms": round((time.monotonic() - unit.started_at) * 1000, 3),
            },
        )

    def abort(self, unit: UnitHandle) -> None:
        """
        Discard a unit.  No-op if the unit is already finished.
        """
        if unit.state != UnitState.OPEN:
            return
        unit.state = UnitState.ABORTED
        try:
            unit.session.rollback()
        except SQLAlchemyError:
            # The server discards an uncommitted transaction when its
            # connection dies, so the pre-unit state is preserved anyway.
            logger.warning("unit_rollback_failed", extra={"unit_id": str(unit.id)}, exc_info=True)
        finally:
            unit.session.close()
        logger.debug("unit_aborted", extra={"unit_id": str(unit.id)})

    @contextmanager
    def unit(self, read_only: bool = False) -> Generator[UnitHandle, None, None]:
        """
        Provide a unit scope.

        Commits on normal exit (aborts instead when read_only is True) and
        aborts on exception.  The exception is re-raised to the caller.

        Usage:
            with store.unit() as unit:
                store.write_holding(unit, HoldingKind.ACCOUNT, account_id, balance=...)
        """
        unit = self.begin_unit()
        with LogContext.bind(unit_id=str(unit.id)):
            try:
                yield unit
            except BaseException:
                self.abort(unit)
                raise
            if read_only:
                self.abort(unit)
            else:
                self.commit(unit)

    # ------------------------------------------------------------------
    # Holdings
    # ------------------------------------------------------------------

    def read_holding(
        self,
        unit: UnitHandle,
        kind: HoldingKind,
        holding_id: UUID,
        for_update: bool = True,
    ) -> Holding | None:
        """
        Read a holding's current state inside the unit.

        With for_update (the default) the row stays locked until the unit
        finishes, so decisions are made on a snapshot no other unit can
        change underneath.
        """
        unit.ensure_open()
        model = _MODELS[kind]
        stmt = select(model).where(model.id == holding_id)
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        with self._translate_errors(unit, "read_holding"):
            row = unit.session.execute(stmt).scalar_one_or_none()
        if row is None:
            return None
        return Holding.from_model(kind, row)

    def write_holding(
        self,
        unit: UnitHandle,
        kind: HoldingKind,
        holding_id: UUID,
        *,
        balance: Decimal | None = None,
        status: str | None = None,
    ) -> Holding:
        """
        Write a holding's new state (balance and/or status) inside the unit.

        Raises:
            HoldingNotFoundError: If the row does not exist.
        """
        unit.ensure_open()
        model = _MODELS[kind]
        with self._translate_errors(unit, "write_holding"):
            row = unit.session.get(model, holding_id)
            if row is None:
                raise HoldingNotFoundError(kind.value, str(holding_id))
            if balance is not None:
                setattr(row, _BALANCE_COLUMNS[kind], balance)
            if status is not None:
                row.status = status
            row.updated_at = self._clock.now()
            unit.session.flush()
        return Holding.from_model(kind, row)

    def insert_holding(
        self,
        unit: UnitHandle,
        row: Account | Investment | Loan,
    ) -> Holding:
        """Insert a newly created holding row."""
        unit.ensure_open()
        kind = next(k for k, m in _MODELS.items() if isinstance(row, m))
        if row.created_at is None:
            row.created_at = self._clock.now()
        with self._translate_errors(unit, "insert_holding"):
            unit.session.add(row)
            unit.session.flush()
        return Holding.from_model(kind, row)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def insert_transaction(
        self,
        unit: UnitHandle,
        record: TransactionRecord,
    ) -> TransactionRecord:
        """Append one audit record inside the unit."""
        unit.ensure_open()
        row = Transaction(
            id=record.id,
            owner_id=record.owner_id,
            from_holding_id=record.from_holding.holding_id if record.from_holding else None,
            from_holding_kind=record.from_holding.kind.value if record.from_holding else None,
            to_holding_id=record.to_holding.holding_id if record.to_holding else None,
            to_holding_kind=record.to_holding.kind.value if record.to_holding else None,
            amount=record.amount,
            kind=record.kind,
            operation=record.operation,
            description=record.description,
            timestamp=record.timestamp,
        )
        with self._translate_errors(unit, "insert_transaction"):
            unit.session.add(row)
            unit.session.flush()
        return TransactionRecord.from_model(row)

    # ------------------------------------------------------------------
    # Error translation
    # ------------------------------------------------------------------

    @contextmanager
    def _translate_errors(self, unit: UnitHandle, action: str) -> Generator[None, None, None]:
        """Map driver errors onto ConflictError / StoreUnavailableError."""
        try:
            yield
        except PoolTimeoutError as exc:
            logger.warning(
                "store_pool_exhausted",
                extra={"unit_id": str(unit.id), "action": action},
            )
            raise ConflictError("connection pool exhausted") from exc
        except OperationalError as exc:
            if is_conflict(exc):
                logger.info(
                    "store_lock_conflict",
                    extra={"unit_id": str(unit.id), "action": action, "error": str(exc.orig)},
                )
                raise ConflictError(str(exc.orig)) from exc
            logger.error(
                "store_unavailable",
                extra={"unit_id": str(unit.id), "action": action, "error": str(exc.orig)},
            )
            raise StoreUnavailableError(str(exc.orig)) from exc
        except DBAPIError as exc:
            if exc.connection_invalidated:
                logger.error(
                    "store_connection_lost",
                    extra={"unit_id": str(unit.id), "action": action},
                )
                raise StoreUnavailableError(str(exc.orig)) from exc
            raise
