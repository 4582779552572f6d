from __future__ import annotations

"""Static fallback rate table.

Consulted only after every live source failed. Lookup is deterministic:
    1. exact entry for the instrument id  -> exact_match
    2. entry for the id's symbol family    -> symbol_match
       (`$ABC+0042` -> `$ABC+0000`)
    3. nothing -> None; no further guessing.
An exact per-issuance entry therefore always wins over the family default.
"""
from typing import Dict, Mapping, Optional

from rate_handler.models.constants import INSTRUMENT_ID_PATTERN, SYMBOL_FAMILY_SUFFIX
from rate_handler.models.rates import FallbackMatch, FallbackRateInfo
from rate_handler.services.money import AmountInput, to_decimal

from .exceptions import InvalidRateError


def symbol_family_key(instrument_id: str) -> Optional[str]:
    match = INSTRUMENT_ID_PATTERN.match(instrument_id)
    if not match:
        return None
    return f"${match.group(1)}+{SYMBOL_FAMILY_SUFFIX}"


def _normalize_rates(rates: Mapping[str, AmountInput]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for key, value in rates.items():
        to_decimal(value, error_cls=InvalidRateError, what=f"rate for {key}")
        out[key] = str(value).strip()
    return out


class FallbackTable:
    def __init__(self, rates: Mapping[str, AmountInput] | None = None):
        self._rates: Dict[str, str] = _normalize_rates(rates or {})

    def update(self, rates: Mapping[str, AmountInput]) -> None:
        # Validate everything before touching the table.
        self._rates = {**self._rates, **_normalize_rates(rates)}

    def as_dict(self) -> Dict[str, str]:
        return dict(self._rates)

    def lookup(self, instrument_id: str) -> Optional[FallbackRateInfo]:
        rate = self._rates.get(instrument_id)
        if rate is not None:
            return FallbackRateInfo(
                rate=rate, source=FallbackMatch.EXACT, source_key=instrument_id
            )
        family = symbol_family_key(instrument_id)
        if family is not None and family in self._rates:
            return FallbackRateInfo(
                rate=self._rates[family], source=FallbackMatch.SYMBOL, source_key=family
            )
        return None
