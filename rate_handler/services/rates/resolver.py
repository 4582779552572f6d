from __future__ import annotations

"""Rate resolver: cache -> live sources -> fallback table, safeguarded.

`resolve()` walks the chain in strict order and stops at the first success:

    1. cache      fresh entry (age < ttl) for the id; skipped when use_cache=False
    2. sources    each configured live source in priority order; a hit is cached
                  under its source tag, a failure is logged and the walk goes on
    3. fallback   static table (exact match, then symbol family match); the
                  result is returned but never cached, so the next call retries
                  the live sources
    4. otherwise  RateUnavailableError naming the instrument

Every returned rate goes through the minimum-rate safeguard, whatever its
provenance. No locking and no de-duplication of concurrent lookups: entries
are replaced atomically and the last completed write wins.
"""
import logging
from decimal import Decimal
from functools import lru_cache
from typing import List, Mapping, Optional, Sequence

import httpx

from rate_handler.core.config import Settings, get_settings
from rate_handler.core.logging import rate_context
from rate_handler.models.constants import DEFAULT_FALLBACK_RATES, DEFAULT_MINIMUM_RATES
from rate_handler.models.rates import CacheInfo, CacheSnapshotEntry, FallbackRateInfo, RateSourceKind
from rate_handler.services.money import AmountInput, format_decimal, to_decimal

from .base import RateFound, RateSource, StepOutcome, summarize_failures
from .cache_service import Clock, RateCache
from .conversion import (
    ConversionDirection,
    ConversionResult,
    apply_conversion,
    instrument_to_usd_amount,
    parse_amount,
    usd_to_instrument_amount,
)
from .exceptions import InvalidInstrumentError, InvalidRateError, RateUnavailableError
from .fallback import FallbackTable
from .providers import make_rate_sources
from .safeguards import SafeguardEnforcer
from .validator import FeeInfoClient

logger = logging.getLogger("rate_handler.resolver")

_EXTERNAL_SOURCES = (RateSourceKind.VALIDATOR, RateSourceKind.INDEXER)


def validate_instrument_id(instrument_id: object) -> str:
    if not isinstance(instrument_id, str) or not instrument_id.strip():
        raise InvalidInstrumentError(
            f"instrument id must be a non-empty string, got {instrument_id!r}"
        )
    return instrument_id


class RateResolver:
    def __init__(
        self,
        *,
        cache_ttl_ms: int = 3000,
        fallback_rates: Optional[Mapping[str, AmountInput]] = None,
        minimum_rates: Optional[Mapping[str, AmountInput]] = None,
        enable_safeguards: bool = True,
        sources: Sequence[RateSource] = (),
        clock: Optional[Clock] = None,
    ):
        self._cache = RateCache(cache_ttl_ms, clock=clock)
        self._fallback = FallbackTable(
            DEFAULT_FALLBACK_RATES if fallback_rates is None else fallback_rates
        )
        self._safeguards = SafeguardEnforcer(
            DEFAULT_MINIMUM_RATES if minimum_rates is None else minimum_rates,
            enabled=enable_safeguards,
        )
        self._sources: List[RateSource] = list(sources)

    # Introspection ---------------------------------------------------
    @property
    def cache_ttl_ms(self) -> int:
        return self._cache.ttl_ms

    @property
    def sources(self) -> List[RateSource]:
        return list(self._sources)

    @property
    def safeguards_enabled(self) -> bool:
        return self._safeguards.enabled

    # Resolution ------------------------------------------------------
    async def resolve(self, instrument_id: str, use_cache: bool = True) -> Decimal:
        validate_instrument_id(instrument_id)
        if use_cache:
            entry = self._cache.get_fresh(instrument_id)
            if entry is not None:
                return self._safeguards.enforce(entry.rate, instrument_id)

        outcomes: List[StepOutcome] = []
        for source in self._sources:
            outcome = await source.attempt(instrument_id)
            outcomes.append(outcome)
            if isinstance(outcome, RateFound):
                self._cache.put(instrument_id, outcome.rate, outcome.source)
                return self._safeguards.enforce(outcome.rate, instrument_id)
            logger.warning(
                "%s failed for %s: %s",
                outcome.source.value,
                instrument_id,
                outcome.reason,
                extra=rate_context(instrument_id=instrument_id, source=outcome.source.value),
            )
        return self._resolve_fallback(instrument_id, outcomes)

    def _resolve_fallback(self, instrument_id: str, outcomes: List[StepOutcome]) -> Decimal:
        info = self._fallback.lookup(instrument_id)
        if info is None:
            raise RateUnavailableError(instrument_id)
        rate = self._safeguards.enforce(Decimal(info.rate), instrument_id)
        logger.warning(
            'All rate sources failed for "%s" (%s). Using fallback rate: %s USD per %s (source: %s)',
            instrument_id,
            summarize_failures(outcomes),
            format_decimal(rate),
            instrument_id,
            info.describe(),
            extra=rate_context(
                instrument_id=instrument_id,
                source=RateSourceKind.FALLBACK.value,
                rate=format_decimal(rate),
            ),
        )
        return rate

    async def submit_external_rate(
        self,
        instrument_id: str,
        rate: AmountInput,
        source: RateSourceKind | str,
        use_cache: bool = True,
    ) -> Decimal:
        """Accept a rate pushed by an external feed.

        A fresh cached rate wins over the pushed value, which is then discarded.
        """
        validate_instrument_id(instrument_id)
        rate_dec = to_decimal(rate, error_cls=InvalidRateError, what="rate")
        try:
            kind = RateSourceKind(source)
        except ValueError as e:
            raise InvalidRateError(f"unknown rate source {source!r}") from e
        if kind not in _EXTERNAL_SOURCES:
            raise InvalidRateError("external rates must come from validator or indexer")

        if use_cache:
            entry = self._cache.get_fresh(instrument_id)
            if entry is not None:
                return self._safeguards.enforce(entry.rate, instrument_id)
        self._cache.put(instrument_id, rate_dec, kind)
        return self._safeguards.enforce(rate_dec, instrument_id)

    # Conversions -----------------------------------------------------
    async def usd_to_instrument(self, usd_amount: AmountInput, instrument_id: str) -> Decimal:
        amount = parse_amount(usd_amount)
        validate_instrument_id(instrument_id)
        rate = await self.resolve(instrument_id)
        return usd_to_instrument_amount(amount, rate, instrument_id)

    async def instrument_to_usd(self, amount: AmountInput, instrument_id: str) -> Decimal:
        parsed = parse_amount(amount)
        validate_instrument_id(instrument_id)
        rate = await self.resolve(instrument_id)
        return instrument_to_usd_amount(parsed, rate)

    async def convert(
        self,
        amount: AmountInput,
        instrument_id: str,
        direction: ConversionDirection | str = ConversionDirection.USD_TO_INSTRUMENT,
    ) -> ConversionResult:
        parsed = parse_amount(amount)
        validate_instrument_id(instrument_id)
        direction = ConversionDirection(direction)
        rate = await self.resolve(instrument_id)
        return apply_conversion(parsed, rate, instrument_id, direction)

    # Cache & configuration -------------------------------------------
    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_snapshot(self) -> List[CacheSnapshotEntry]:
        return self._cache.snapshot()

    def cache_info(self) -> CacheInfo:
        entries = self._cache.snapshot()
        return CacheInfo(size=len(entries), ttl_ms=self._cache.ttl_ms, entries=entries)

    def get_fallback_info(self, instrument_id: str) -> Optional[FallbackRateInfo]:
        return self._fallback.lookup(validate_instrument_id(instrument_id))

    def fallback_rates(self) -> dict:
        return self._fallback.as_dict()

    def minimum_rates(self) -> dict:
        return self._safeguards.as_dict()

    def update_fallback_rates(self, rates: Mapping[str, AmountInput]) -> None:
        self._fallback.update(rates)

    def update_minimum_rates(self, rates: Mapping[str, AmountInput]) -> None:
        self._safeguards.update(rates)

    def set_safeguards_enabled(self, enabled: bool) -> None:
        self._safeguards.enabled = enabled

    async def aclose(self) -> None:
        for source in self._sources:
            await source.aclose()


def build_rate_resolver(
    settings: Settings,
    *,
    validator_client: Optional[FeeInfoClient] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    clock: Optional[Clock] = None,
) -> RateResolver:
    return RateResolver(
        cache_ttl_ms=settings.rates_cache_ttl_ms,
        fallback_rates=settings.fallback_rates,
        minimum_rates=settings.minimum_rates,
        enable_safeguards=settings.enable_safeguards,
        sources=make_rate_sources(settings, validator_client, http_client),
        clock=clock,
    )


# Process-wide default shared by the convenience functions and create_app()
@lru_cache
def get_rate_resolver() -> RateResolver:
    return build_rate_resolver(get_settings())


async def get_exchange_rate(instrument_id: str) -> Decimal:
    return await get_rate_resolver().resolve(instrument_id)


async def convert_usd_to_instrument(usd_amount: AmountInput, instrument_id: str) -> Decimal:
    return await get_rate_resolver().usd_to_instrument(usd_amount, instrument_id)


async def convert_instrument_to_usd(amount: AmountInput, instrument_id: str) -> Decimal:
    return await get_rate_resolver().instrument_to_usd(amount, instrument_id)


async def submit_external_rate(
    instrument_id: str, rate: AmountInput, source: RateSourceKind | str
) -> Decimal:
    return await get_rate_resolver().submit_external_rate(instrument_id, rate, source)
