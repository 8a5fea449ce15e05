"""
Monetary Amount Coercion

Every monetary value that enters the system goes through ``to_amount``.

DESIGN DECISION: Records come from a schemaless document store and from
user-edited backup files, so any field may be missing, null, a string,
or plain garbage. Instead of rejecting such records we read them as zero.
This keeps the allocation engine total: it never fails on data content.

Policy:
- Decimal / int / float -> Decimal (NaN, infinities and magnitudes
  beyond 1e300 or below 1e-300 -> 0)
- str -> parsed after stripping whitespace, otherwise 0
- None, bool and any other type -> 0
- Negative values are NOT rejected
"""

from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Union

from pydantic import BeforeValidator, PlainSerializer


ZERO = Decimal("0")

# Decimal exponents past this read as unusable
MAX_EXPONENT = 300


def to_amount(value: Any) -> Decimal:
    """
    Coerce an arbitrary value to a Decimal amount, or 0 if unusable.

    >>> to_amount("1500.50")
    Decimal('1500.50')
    >>> to_amount(None)
    Decimal('0')
    >>> to_amount("abc")
    Decimal('0')
    """
    # bool is an int subclass; True must not read as 1
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return ZERO
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return ZERO
    else:
        return ZERO

    if not amount.is_finite() or abs(amount.adjusted()) > MAX_EXPONENT:
        return ZERO
    return amount


def to_number(amount: Decimal) -> Union[int, float]:
    """Render an amount as a JSON number (int when integral)."""
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def to_priority(value: Any) -> int:
    """Coerce a priority value to int using the same policy as amounts."""
    return int(to_amount(value))


# Annotated types used by the record models
Amount = Annotated[
    Decimal,
    BeforeValidator(to_amount),
    PlainSerializer(to_number, when_used="json"),
]
Priority = Annotated[int, BeforeValidator(to_priority)]
