from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, DivisionByZero, localcontext
from enum import Enum

from rate_handler.services.money import CONVERSION_CONTEXT, AmountInput, to_decimal

from .exceptions import InvalidAmountError

"""USD <-> instrument conversion arithmetic.

Centralizes the math so the resolver, the HTTP layer and tests agree:
    - amounts are parsed once (negative / non-numeric input rejected)
    - division and multiplication run in a wide Decimal context, never float
    - a zero rate is a division-by-zero error, never infinity
"""


class ConversionDirection(str, Enum):
    USD_TO_INSTRUMENT = "usd_to_instrument"
    INSTRUMENT_TO_USD = "instrument_to_usd"


@dataclass(frozen=True)
class ConversionResult:
    amount: Decimal
    instrument_id: str
    rate: Decimal
    converted: Decimal
    direction: ConversionDirection


def parse_amount(amount: AmountInput) -> Decimal:
    return to_decimal(amount, error_cls=InvalidAmountError, what="amount")


def usd_to_instrument_amount(usd_amount: Decimal, rate: Decimal, instrument_id: str) -> Decimal:
    if rate == 0:
        raise DivisionByZero(f"resolved rate for {instrument_id} is zero")
    with localcontext(CONVERSION_CONTEXT):
        return usd_amount / rate


def instrument_to_usd_amount(amount: Decimal, rate: Decimal) -> Decimal:
    with localcontext(CONVERSION_CONTEXT):
        return amount * rate


def apply_conversion(
    amount: Decimal, rate: Decimal, instrument_id: str, direction: ConversionDirection
) -> ConversionResult:
    if direction is ConversionDirection.USD_TO_INSTRUMENT:
        converted = usd_to_instrument_amount(amount, rate, instrument_id)
    else:
        converted = instrument_to_usd_amount(amount, rate)
    return ConversionResult(
        amount=amount,
        instrument_id=instrument_id,
        rate=rate,
        converted=converted,
        direction=direction,
    )
