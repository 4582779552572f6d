from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from rate_handler.core.config import Settings
from rate_handler.models.rates import CacheInfo, FallbackRateInfo, RateSourceKind
from rate_handler.services.money import format_decimal
from rate_handler.services.rates.conversion import ConversionDirection
from rate_handler.services.rates.resolver import RateResolver

"""Rates router.

Read endpoints:
    - GET /rates/cache                          -> cache diagnostics
    - GET /rates/{instrument_id}                -> resolved rate (USD per unit)
    - GET /rates/{instrument_id}/convert        -> USD <-> instrument conversion
    - GET /rates/{instrument_id}/fallback       -> fallback table match, 404 if none
    - POST /rates/{instrument_id}/submissions   -> push a rate from an external feed

Admin endpoints (guarded by settings.enable_rate_admin):
    - DELETE /rates/cache
    - PUT /rates/fallback-rates, PUT /rates/minimum-rates  (merge updates)
    - PUT /rates/safeguards

Rates and amounts travel as strings so no precision is lost to JSON floats.
Instrument ids contain `$` and `+`; clients should percent-encode them.
"""

router = APIRouter(prefix="/rates", tags=["rates"])


def get_resolver(request: Request) -> RateResolver:
    return request.app.state.rate_resolver


def require_admin_enabled(request: Request):
    settings: Settings = request.app.state.settings
    if not settings.enable_rate_admin:
        raise HTTPException(status_code=403, detail="rate admin feature disabled")
    return True


class RateOut(BaseModel):
    instrument_id: str
    rate: str


class ConversionOut(BaseModel):
    instrument_id: str
    direction: ConversionDirection
    amount: str
    rate: str
    converted: str


class SubmissionPayload(BaseModel):
    rate: str = Field(..., description="USD per 1 unit of the instrument")
    source: RateSourceKind = Field(RateSourceKind.VALIDATOR, description="validator or indexer")
    use_cache: bool = True


class RateTablePayload(BaseModel):
    rates: Dict[str, str] = Field(..., description="instrument id -> decimal rate string")


class SafeguardsPayload(BaseModel):
    enabled: bool


@router.get("/cache", summary="Cache diagnostics", response_model=CacheInfo)
async def cache_info(resolver: RateResolver = Depends(get_resolver)) -> CacheInfo:
    return resolver.cache_info()


@router.delete("/cache", summary="Clear the rate cache")
async def clear_cache(
    _: bool = Depends(require_admin_enabled),
    resolver: RateResolver = Depends(get_resolver),
):
    resolver.clear_cache()
    return {"status": "cleared"}


@router.put("/fallback-rates", summary="Merge entries into the fallback table")
async def update_fallback_rates(
    payload: RateTablePayload,
    _: bool = Depends(require_admin_enabled),
    resolver: RateResolver = Depends(get_resolver),
):
    resolver.update_fallback_rates(payload.rates)
    return {"status": "ok", "fallback_rates": resolver.fallback_rates()}


@router.put("/minimum-rates", summary="Merge entries into the minimum-rate table")
async def update_minimum_rates(
    payload: RateTablePayload,
    _: bool = Depends(require_admin_enabled),
    resolver: RateResolver = Depends(get_resolver),
):
    resolver.update_minimum_rates(payload.rates)
    return {"status": "ok", "minimum_rates": resolver.minimum_rates()}


@router.put("/safeguards", summary="Enable or disable minimum-rate safeguards")
async def set_safeguards(
    payload: SafeguardsPayload,
    _: bool = Depends(require_admin_enabled),
    resolver: RateResolver = Depends(get_resolver),
):
    resolver.set_safeguards_enabled(payload.enabled)
    return {"status": "ok", "enabled": resolver.safeguards_enabled}


@router.get("/{instrument_id}", summary="Resolve the USD rate of an instrument", response_model=RateOut)
async def get_rate(
    instrument_id: str,
    use_cache: bool = True,
    resolver: RateResolver = Depends(get_resolver),
) -> RateOut:
    rate = await resolver.resolve(instrument_id, use_cache=use_cache)
    return RateOut(instrument_id=instrument_id, rate=format_decimal(rate))


@router.post(
    "/{instrument_id}/submissions",
    summary="Submit a rate from an external feed",
    response_model=RateOut,
)
async def submit_rate(
    instrument_id: str,
    payload: SubmissionPayload,
    resolver: RateResolver = Depends(get_resolver),
) -> RateOut:
    rate = await resolver.submit_external_rate(
        instrument_id, payload.rate, payload.source, use_cache=payload.use_cache
    )
    return RateOut(instrument_id=instrument_id, rate=format_decimal(rate))


@router.get(
    "/{instrument_id}/convert",
    summary="Convert between USD and an instrument",
    response_model=ConversionOut,
)
async def convert(
    instrument_id: str,
    amount: str = Query(..., description="Decimal amount to convert"),
    direction: ConversionDirection = ConversionDirection.USD_TO_INSTRUMENT,
    resolver: RateResolver = Depends(get_resolver),
) -> ConversionOut:
    result = await resolver.convert(amount, instrument_id, direction)
    return ConversionOut(
        instrument_id=instrument_id,
        direction=result.direction,
        amount=format_decimal(result.amount),
        rate=format_decimal(result.rate),
        converted=format_decimal(result.converted),
    )


@router.get(
    "/{instrument_id}/fallback",
    summary="Fallback table match for an instrument",
    response_model=FallbackRateInfo,
)
async def fallback_info(
    instrument_id: str,
    resolver: RateResolver = Depends(get_resolver),
) -> FallbackRateInfo:
    info = resolver.get_fallback_info(instrument_id)
    if info is None:
        raise HTTPException(status_code=404, detail=f"no fallback rate for {instrument_id}")
    return info
