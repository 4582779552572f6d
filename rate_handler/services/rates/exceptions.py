"""Exception hierarchy for rate resolution.

Only `RateUnavailableError` and the input validation errors ever reach the
caller of the resolver; `SourceError` is raised by source adapters and is
caught at the resolver step boundary.
"""

from __future__ import annotations


class RateError(Exception):
    pass


class InvalidInstrumentError(RateError, ValueError):
    pass


class InvalidAmountError(RateError, ValueError):
    pass


class InvalidRateError(RateError, ValueError):
    pass


class RateUnavailableError(RateError, LookupError):
    """No live source answered and no fallback rate is configured."""

    def __init__(self, instrument_id: str):
        self.instrument_id = instrument_id
        super().__init__(
            f'No exchange rate available for "{instrument_id}" from any source '
            "and no fallback rate configured. Please add a fallback rate for "
            "this instrument."
        )


class SourceError(RateError):
    """Transient failure of a single rate source."""
