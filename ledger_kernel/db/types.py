"""
Module: ledger_kernel.db.types
Responsibility: Monetary column type and the canonical amount parsing and
    rounding helpers.  Centralizes precision so that every model and service
    uses identical money semantics.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers
    (exceptions.py excepted).

Invariants enforced:
    - Money has exactly MONEY_DECIMAL_PLACES (2) fractional digits.
    - Money is persisted as integer minor units (cents), so no float ever
      participates in storage or SQL aggregation.
    - parse_amount() is the ONLY sanctioned way to turn caller input into a
      monetary Decimal.  Floats are rejected outright.

Failure modes:
    - InvalidAmountError on float, NaN/Infinity, non-numeric strings, or
      values with more than two fractional digits.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

from ledger_kernel.exceptions import InvalidAmountError

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)
_MINOR_UNITS = Decimal(10) ** MONEY_DECIMAL_PLACES

ZERO = Decimal("0.00")

# Largest amount whose minor units fit comfortably in a BIGINT column.
MAX_AMOUNT = Decimal("999999999999999.99")


class FixedDecimal(TypeDecorator):
    """
    Two-place Decimal stored as a BIGINT count of hundredths.

    Used for every money column and for percent rates, so SQLite and
    PostgreSQL round-trip values exactly.

    Contract:
        Binds Decimal("12.34") as 1234 and loads 1234 as Decimal("12.34").

    Guarantees:
        - Values are quantized to two places on the way in; a value with
          more precision is a programming error and raises ValueError.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value)
        if value != value.quantize(_QUANTUM):
            raise ValueError(f"Money value {value} has more than {MONEY_DECIMAL_PLACES} decimal places")
        return int(value * _MINOR_UNITS)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(int(value)) / _MINOR_UNITS).quantize(_QUANTUM)


def round_money(value: Decimal, rounding: str = DEFAULT_ROUNDING) -> Decimal:
    """
    Round a monetary value to two decimal places.

    This is the only sanctioned rounding function for money values.
    """
    return value.quantize(_QUANTUM, rounding=rounding)


def money_from_cents(value: int) -> Decimal:
    """
    Create a Money value from integer minor units.

    Example:
        money_from_cents(1050) -> Decimal("10.50")
    """
    return (Decimal(value) / _MINOR_UNITS).quantize(_QUANTUM)


def parse_amount(value: object, *, allow_zero: bool = False) -> Decimal:
    """
    Validate caller input and return it as an exact two-place Decimal.

    Preconditions: value is a Decimal, int or numeric string.
    Postconditions: Returns a Decimal quantized to two places that is
        strictly positive (or non-negative when allow_zero is True).

    Raises:
        InvalidAmountError: If the value is a float or bool, is not a finite
            number, carries more than two fractional digits, or is out of
            the permitted sign range.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(value, "floating-point amounts are not accepted")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation:
            raise InvalidAmountError(value, "not a number") from None
    else:
        raise InvalidAmountError(value, f"unsupported type {type(value).__name__}")

    if not amount.is_finite():
        raise InvalidAmountError(value, "not a finite number")

    if abs(amount) > MAX_AMOUNT:
        raise InvalidAmountError(value, f"exceeds maximum of {MAX_AMOUNT}")

    quantized = amount.quantize(_QUANTUM, rounding=DEFAULT_ROUNDING)
    if amount != quantized:
        raise InvalidAmountError(
            value, f"more than {MONEY_DECIMAL_PLACES} fractional digits"
        )

    amount = quantized
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmountError(
            value, "must be non-negative" if allow_zero else "must be positive"
        )
    return amount
