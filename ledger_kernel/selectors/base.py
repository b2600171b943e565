"""
Module: ledger_kernel.selectors.base
Responsibility: Base class for read-only query selectors.  Selectors are the
    query side of the kernel: structured read access to holdings and
    transactions without any mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/dtos.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: every query runs in a unit opened with read_only=True, which
      is always aborted, never committed.
    - DTO return convention: selectors return frozen dataclasses, never ORM
      instances.
    - Snapshot reads: a selector call sees either all of a committed unit's
      writes or none of them.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from ledger_kernel.db.store import LedgerStore


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a LedgerStore, open their own read-only units and
        return DTOs.  They MUST NOT add, delete, flush or commit.
    """

    def __init__(self, store: LedgerStore):
        self.store = store

    @contextmanager
    def _read(self) -> Generator[Session, None, None]:
        """Session of a read-only unit, discarded on exit."""
        with self.store.unit(read_only=True) as unit:
            yield unit.session
