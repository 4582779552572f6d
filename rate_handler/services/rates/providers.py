from __future__ import annotations

"""Concrete live rate sources and the factory that orders them.

Priority order (first success wins):
    1. indexer   - HTTP exchange-rate endpoint, only when an API key is configured
    2. validator - fee-info query against the validator, when a client is supplied
"""
from decimal import Decimal
from typing import List, Optional
from urllib.parse import quote

import httpx

from rate_handler.core.config import Settings
from rate_handler.models.rates import RateSourceKind
from rate_handler.services.http_client import HttpError, get_json
from rate_handler.services.money import to_decimal

from .base import RateSource
from .exceptions import InvalidRateError, SourceError
from .validator import FeeInfoClient, pick_token, token_rate


class ValidatorRateSource(RateSource):
    kind = RateSourceKind.VALIDATOR

    def __init__(self, client: FeeInfoClient):
        self._client = client

    async def fetch_rate(self, instrument_id: str) -> Decimal:  # type: ignore[override]
        try:
            response = await self._client.get_token_fee_info(
                [instrument_id], include_rates=True, include_contract_fees=True
            )
        except Exception as e:
            raise SourceError(f"fee-info query failed: {e}") from e
        token = pick_token(response, instrument_id)
        if token is None:
            raise SourceError(f"validator returned no token record for {instrument_id}")
        return token_rate(token)


class IndexerRateSource(RateSource):
    kind = RateSourceKind.INDEXER

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 2.5,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._owns_client = client is None
        self._http: Optional[httpx.AsyncClient] = client

    def http_client(self) -> httpx.AsyncClient:
        """Client for the next request; an owned client is reopened after aclose()."""
        if self._http is None or (self._owns_client and self._http.is_closed):
            self._http = httpx.AsyncClient()
        return self._http

    def url_for(self, instrument_id: str) -> str:
        return f"{self._base_url}/api/v1/exchange-rates/{quote(instrument_id, safe='')}"

    async def fetch_rate(self, instrument_id: str) -> Decimal:  # type: ignore[override]
        try:
            data = await get_json(
                self.http_client(),
                self.url_for(instrument_id),
                headers={"x-api-key": self._api_key},
                timeout=self._timeout,
            )
        except HttpError as e:
            raise SourceError(str(e)) from e
        rate = data.get("rate")
        if isinstance(rate, bool) or not isinstance(rate, (int, float)) or rate <= 0:
            raise SourceError("Invalid exchange rate data received")
        return to_decimal(rate, error_cls=InvalidRateError, what="indexer rate")

    async def aclose(self) -> None:
        if self._owns_client and self._http is not None:
            await self._http.aclose()
            self._http = None


def make_rate_sources(
    settings: Settings,
    validator_client: Optional[FeeInfoClient] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> List[RateSource]:
    sources: List[RateSource] = []
    if settings.indexer_api_key:
        sources.append(
            IndexerRateSource(
                str(settings.indexer_base_url),
                settings.indexer_api_key,
                timeout=settings.indexer_timeout_seconds,
                client=http_client,
            )
        )
    if validator_client is not None:
        sources.append(ValidatorRateSource(validator_client))
    return sources
