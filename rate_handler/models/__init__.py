"""Pydantic models and constants for the exchange-rate resolver."""

from .constants import (
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_FALLBACK_RATES,
    DEFAULT_MINIMUM_RATES,
    NATIVE_INSTRUMENT,
)  # re-export
from .rates import (
    CacheInfo,
    CacheSnapshotEntry,
    ContractFee,
    FallbackMatch,
    FallbackRateInfo,
    RateSourceKind,
    TokenFeeInfo,
    TokenFeeInfoResponse,
    TokenRate,
)

__all__ = [
    "DEFAULT_CACHE_TTL_MS",
    "DEFAULT_FALLBACK_RATES",
    "DEFAULT_MINIMUM_RATES",
    "NATIVE_INSTRUMENT",
    "CacheInfo",
    "CacheSnapshotEntry",
    "ContractFee",
    "FallbackMatch",
    "FallbackRateInfo",
    "RateSourceKind",
    "TokenFeeInfo",
    "TokenFeeInfoResponse",
    "TokenRate",
]
