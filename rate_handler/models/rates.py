from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class RateSourceKind(str, Enum):
    """Provenance of a resolved rate."""

    VALIDATOR = "validator"
    INDEXER = "indexer"
    FALLBACK = "fallback"


class FallbackMatch(str, Enum):
    EXACT = "exact_match"
    SYMBOL = "symbol_match"


class FallbackRateInfo(BaseModel):
    rate: str
    source: FallbackMatch
    source_key: str

    def describe(self) -> str:
        if self.source is FallbackMatch.EXACT:
            return f"exact match for {self.source_key}"
        return f"symbol match using {self.source_key}"


class CacheSnapshotEntry(BaseModel):
    instrument_id: str
    rate: str
    age_ms: int
    expired: bool
    source: RateSourceKind


class CacheInfo(BaseModel):
    size: int
    ttl_ms: int
    entries: List[CacheSnapshotEntry] = Field(default_factory=list)


# Validator wire records ------------------------------------------------------


class ContractFee(BaseModel):
    fee_type: str
    fee: str
    fee_address: Optional[str] = None
    burn: Optional[str] = None
    validator: Optional[str] = None


class TokenFeeInfo(BaseModel):
    """One token record of a validator fee-info response.

    `rate` is a fixed-point integer string scaled by 10^18; empty or missing
    when the validator has no authorized rate for the token.
    """

    contract_id: str
    rate: Optional[str] = None
    authorized: bool = False
    denomination: Optional[str] = None
    contract_fee: Optional[ContractFee] = None

    @field_validator("rate")
    @classmethod
    def blank_rate_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()


class TokenFeeInfoResponse(BaseModel):
    tokens: List[TokenFeeInfo] = Field(default_factory=list)


class TokenRate(BaseModel):
    contract_id: str
    rate: Decimal
