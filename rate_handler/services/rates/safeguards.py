from __future__ import annotations

"""Minimum-rate safeguard for fee evaluation.

Every rate leaving the resolver passes through `enforce()`: while enabled, a
rate below the configured floor for its instrument is replaced by the floor.
"""
import logging
from decimal import Decimal
from typing import Dict, Mapping

from rate_handler.core.logging import rate_context
from rate_handler.services.money import AmountInput, format_decimal, to_decimal

from .exceptions import InvalidRateError

logger = logging.getLogger("rate_handler.safeguards")


class SafeguardEnforcer:
    def __init__(
        self, minimum_rates: Mapping[str, AmountInput] | None = None, enabled: bool = True
    ):
        self._minimums: Dict[str, Decimal] = {}
        self.enabled = enabled
        self.update(minimum_rates or {})

    def update(self, minimum_rates: Mapping[str, AmountInput]) -> None:
        parsed = {
            key: to_decimal(value, error_cls=InvalidRateError, what=f"minimum rate for {key}")
            for key, value in minimum_rates.items()
        }
        self._minimums = {**self._minimums, **parsed}

    def minimum_for(self, instrument_id: str) -> Decimal | None:
        return self._minimums.get(instrument_id)

    def as_dict(self) -> Dict[str, str]:
        return {k: format_decimal(v) for k, v in self._minimums.items()}

    def enforce(self, rate: Decimal, instrument_id: str) -> Decimal:
        if not self.enabled:
            return rate
        minimum = self._minimums.get(instrument_id)
        if minimum is not None and rate < minimum:
            logger.warning(
                "Rate %s for %s below minimum %s, applying safeguard",
                format_decimal(rate),
                instrument_id,
                format_decimal(minimum),
                extra=rate_context(instrument_id=instrument_id, rate=format_decimal(minimum)),
            )
            return minimum
        return rate
