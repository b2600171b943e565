"""
ORM-level immutability enforcement for audit records.

Transaction rows are append-only: once inserted they are never updated or
deleted.  SQLAlchemy fires mapper events before UPDATE/DELETE SQL is sent,
so the listeners below reject the flush and the unit aborts untouched.

    session.flush()
         |
         v
    [before_update] --> _check_transaction_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_transaction_delete() --------> ImmutabilityViolationError

The database CHECK constraints on holdings are the second layer for the
balance invariant; this module covers the audit-trail invariant.

Registered by LedgerStore on construction.
"""

from sqlalchemy import event

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_transaction_immutability(mapper, connection, target):
    """Prevent any updates to Transaction records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Transaction",
            "entity_id": str(target.id),
            "db_operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Transaction",
        entity_id=str(target.id),
        reason="Transaction records are immutable and cannot be modified",
    )


def _check_transaction_delete(mapper, connection, target):
    """Prevent deletion of Transaction records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Transaction",
            "entity_id": str(target.id),
            "db_operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Transaction",
        entity_id=str(target.id),
        reason="Transaction records cannot be deleted",
    )


_LISTENERS = (
    ("before_update", _check_transaction_immutability),
    ("before_delete", _check_transaction_delete),
)


def register_immutability_listeners() -> None:
    """Register the Transaction listeners (idempotent)."""
    from ledger_kernel.models.transaction import Transaction

    for event_name, listener_fn in _LISTENERS:
        if not event.contains(Transaction, event_name, listener_fn):
            event.listen(Transaction, event_name, listener_fn)
