"""
Fixed-precision money helpers.

Every monetary value is a ``Decimal`` quantized to cents with ROUND_HALF_UP.
Floats are only accepted through ``str()`` so binary representation error
never reaches the arithmetic.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Iterable, Union

getcontext().prec = 28

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert to an unquantized Decimal."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Not a number: {value!r}")


def qround(value: Number) -> Decimal:
    """Round half-up to two decimal places."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Number]) -> Decimal:
    """Sum exactly, then round once."""
    total = Decimal(0)
    for value in values:
        total += to_decimal(value)
    return qround(total)


def format_money(value: Number) -> str:
    return str(qround(value))


def has_places(value: Number, places: int) -> bool:
    """True when ``value`` needs no more than ``places`` decimal places."""
    value = to_decimal(value)
    return value == value.quantize(Decimal(1).scaleb(-places))
