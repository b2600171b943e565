"""
Typed exception hierarchy for the ledger kernel.

Every error carries a ``code`` class attribute (machine-readable, API-safe)
and stores its context as attributes, so callers catch by type and read
structured data instead of parsing messages.

    LedgerKernelError (base)
    |
    +-- AmountError
    |   +-- InvalidAmountError
    |
    +-- HoldingError
    |   +-- HoldingNotFoundError
    |   |   +-- UnauthorizedHoldingError
    |   +-- InvalidHoldingStateError
    |   +-- InvalidHoldingTypeError
    |
    +-- FundsError
    |   +-- InsufficientFundsError
    |   +-- BalanceLimitExceededError
    |
    +-- StoreError
    |   +-- ConflictError
    |   +-- StoreUnavailableError
    |   +-- UnitClosedError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- QueryError
        +-- InvalidPageError

Category        | Code                   | When Raised
----------------|------------------------|------------------------------------------
Amount          | INVALID_AMOUNT         | amount <= 0, float, NaN, > 2 decimals
Holding         | HOLDING_NOT_FOUND      | holding missing OR owned by someone else
                | INVALID_HOLDING_STATE  | status forbids the operation
                | INVALID_HOLDING_TYPE   | unknown account/investment/loan type
Funds           | INSUFFICIENT_FUNDS     | debit would leave a negative balance
Store           | CONCURRENT_CONFLICT    | lock wait / deadlock beyond retry budget
                | STORE_UNAVAILABLE      | database unreachable or commit failed
                | UNIT_CLOSED            | unit used after commit/abort
Immutability    | IMMUTABILITY_VIOLATION | update/delete of a Transaction record
Query           | INVALID_PAGE           | negative page or out-of-range page size

UnauthorizedHoldingError deliberately shares HOLDING_NOT_FOUND and the
not-found message: callers must not learn that another owner's holding
exists. Only server-side logs distinguish the two.

Only ConflictError is retried (by the orchestrator). Everything else is
surfaced verbatim after the unit is aborted.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Amount-related exceptions


class AmountError(LedgerKernelError):
    """Base exception for amount validation errors."""

    code: str = "AMOUNT_ERROR"


class InvalidAmountError(AmountError):
    """Amount is non-positive or malformed."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object, reason: str):
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"Invalid amount {amount!r}: {reason}")


# Holding-related exceptions


class HoldingError(LedgerKernelError):
    """Base exception for holding-related errors."""

    code: str = "HOLDING_ERROR"


class HoldingNotFoundError(HoldingError):
    """Holding does not exist (or is not visible to the caller)."""

    code: str = "HOLDING_NOT_FOUND"

    def __init__(self, holding_kind: str, holding_id: str):
        self.holding_kind = holding_kind
        self.holding_id = holding_id
        super().__init__(f"{holding_kind.capitalize()} not found: {holding_id}")


class UnauthorizedHoldingError(HoldingNotFoundError):
    """
    Holding exists but belongs to a different owner.

    Reported to callers exactly like HoldingNotFoundError.
    """

    code: str = "HOLDING_NOT_FOUND"


class InvalidHoldingStateError(HoldingError):
    """Holding status does not allow the requested operation."""

    code: str = "INVALID_HOLDING_STATE"

    def __init__(self, holding_kind: str, holding_id: str, status: str, expected: tuple[str, ...]):
        self.holding_kind = holding_kind
        self.holding_id = holding_id
        self.status = status
        self.expected = list(expected)
        super().__init__(
            f"{holding_kind.capitalize()} {holding_id} is {status}; "
            f"expected one of {', '.join(expected)}"
        )


class InvalidHoldingTypeError(HoldingError, ValueError):
    """Unknown account, investment or loan type."""

    code: str = "INVALID_HOLDING_TYPE"

    def __init__(self, holding_kind: str, value: str):
        self.holding_kind = holding_kind
        self.value = value
        super().__init__(f"Invalid {holding_kind} type: {value!r}")


# Funds-related exceptions


class FundsError(LedgerKernelError):
    """Base exception for balance errors."""

    code: str = "FUNDS_ERROR"


class InsufficientFundsError(FundsError):
    """Debit would leave the holding with a negative balance."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, holding_kind: str, holding_id: str, balance: str, requested: str):
        self.holding_kind = holding_kind
        self.holding_id = holding_id
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient funds in {holding_kind} {holding_id}: "
            f"balance={balance}, requested={requested}"
        )


class BalanceLimitExceededError(FundsError):
    """Credit would push the holding past the largest storable balance."""

    code: str = "BALANCE_LIMIT_EXCEEDED"

    def __init__(self, holding_kind: str, holding_id: str, balance: str, requested: str):
        self.holding_kind = holding_kind
        self.holding_id = holding_id
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Balance limit exceeded for {holding_kind} {holding_id}: "
            f"balance={balance}, requested={requested}"
        )


# Store-related exceptions


class StoreError(LedgerKernelError):
    """Base exception for ledger store errors."""

    code: str = "STORE_ERROR"


class ConflictError(StoreError):
    """
    Concurrent unit collision.

    Raised by the store on lock timeout, deadlock or serialization failure,
    and surfaced by the orchestrator once its retry budget is exhausted.
    """

    code: str = "CONCURRENT_CONFLICT"

    def __init__(self, reason: str, attempts: int = 1):
        self.reason = reason
        self.attempts = attempts
        super().__init__(f"Concurrent conflict after {attempts} attempt(s): {reason}")


class StoreUnavailableError(StoreError):
    """Durability layer unreachable or commit failed."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Ledger store unavailable: {reason}")


class UnitClosedError(StoreError):
    """Unit handle used after commit or abort."""

    code: str = "UNIT_CLOSED"

    def __init__(self, unit_id: str, state: str):
        self.unit_id = unit_id
        self.state = state
        super().__init__(f"Unit {unit_id} is already {state}")


# Immutability exceptions


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempt to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id}: {reason}")


# Query exceptions


class QueryError(LedgerKernelError):
    """Base exception for read-side errors."""

    code: str = "QUERY_ERROR"


class InvalidPageError(QueryError):
    """Pagination parameters out of range."""

    code: str = "INVALID_PAGE"

    def __init__(self, page: int, page_size: int, max_page_size: int):
        self.page = page
        self.page_size = page_size
        self.max_page_size = max_page_size
        super().__init__(
            f"Invalid page request: page={page}, page_size={page_size} "
            f"(page >= 0, 1 <= page_size <= {max_page_size})"
        )
