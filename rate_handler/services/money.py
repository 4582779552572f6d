"""Decimal helpers shared by the rate tables, sources and conversions.

Rates and amounts never pass through float arithmetic: floats are accepted
at the edges but converted through their string form.
"""

from __future__ import annotations

from decimal import Context, Decimal, InvalidOperation, localcontext
from typing import Type, Union

from rate_handler.models.constants import WIRE_RATE_DECIMALS

AmountInput = Union[str, int, float, Decimal]

# Precision for conversion arithmetic; wide enough that terminating
# quotients are carried exactly.
CONVERSION_CONTEXT = Context(prec=60)

_WIRE_SCALE = Decimal(10) ** WIRE_RATE_DECIMALS


def to_decimal(
    value: AmountInput,
    *,
    error_cls: Type[ValueError] = ValueError,
    what: str = "value",
    allow_negative: bool = False,
) -> Decimal:
    if isinstance(value, bool):
        raise error_cls(f"{what} must be a decimal number, got {value!r}")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float, str)):
        try:
            dec = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise error_cls(f"{what} must be a decimal number, got {value!r}") from e
    else:
        raise error_cls(f"{what} must be a decimal number, got {value!r}")
    if not dec.is_finite():
        raise error_cls(f"{what} must be finite, got {value!r}")
    if not allow_negative and dec < 0:
        raise error_cls(f"{what} must not be negative, got {value!r}")
    return dec


def from_wire_rate(raw: str) -> Decimal:
    """Convert a 10^18 fixed-point rate string into a human-unit Decimal."""
    with localcontext(CONVERSION_CONTEXT):
        return to_decimal(raw, what="wire rate") / _WIRE_SCALE


def format_decimal(value: Decimal) -> str:
    """Plain (non-exponent) string form, trailing zeros kept as computed."""
    return format(value, "f")
