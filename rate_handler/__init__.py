"""USD exchange-rate resolver for on-chain fee instruments."""

from .models.rates import FallbackRateInfo, RateSourceKind
from .services.rates.exceptions import (
    InvalidAmountError,
    InvalidInstrumentError,
    InvalidRateError,
    RateError,
    RateUnavailableError,
    SourceError,
)
from .services.rates.resolver import (
    RateResolver,
    build_rate_resolver,
    convert_instrument_to_usd,
    convert_usd_to_instrument,
    get_exchange_rate,
    get_rate_resolver,
    submit_external_rate,
)

__all__ = [
    "FallbackRateInfo",
    "RateSourceKind",
    "InvalidAmountError",
    "InvalidInstrumentError",
    "InvalidRateError",
    "RateError",
    "RateUnavailableError",
    "SourceError",
    "RateResolver",
    "build_rate_resolver",
    "convert_instrument_to_usd",
    "convert_usd_to_instrument",
    "get_exchange_rate",
    "get_rate_resolver",
    "submit_external_rate",
]
