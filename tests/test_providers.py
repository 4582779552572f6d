from decimal import Decimal

import httpx
import pytest

from rate_handler.core.config import Settings
from rate_handler.models.rates import RateSourceKind, TokenFeeInfo
from rate_handler.services.rates.base import RateFound, SourceFailed, summarize_failures
from rate_handler.services.rates.exceptions import InvalidInstrumentError, SourceError
from rate_handler.services.rates.providers import (
    IndexerRateSource,
    ValidatorRateSource,
    make_rate_sources,
)
from rate_handler.services.rates.validator import get_token_rate, get_token_rates

from conftest import ZRA, FakeFeeInfoClient, wire

pytestmark = pytest.mark.asyncio


def indexer_with(handler) -> IndexerRateSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IndexerRateSource("https://indexer.test/", "secret", timeout=2.5, client=client)


async def test_indexer_success_sends_key_and_encoded_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.raw_path.decode()
        seen["key"] = request.headers.get("x-api-key")
        return httpx.Response(200, json={"rate": 0.1234})

    source = indexer_with(handler)
    outcome = await source.attempt(ZRA)

    assert outcome == RateFound(RateSourceKind.INDEXER, Decimal("0.1234"))
    assert seen["path"] == "/api/v1/exchange-rates/%24ZRA%2B0000"
    assert seen["key"] == "secret"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"error": "unauthorized"}),
        httpx.Response(500, text="oops"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"price": 1.0}),
        httpx.Response(200, json={"rate": "0.5"}),
        httpx.Response(200, json={"rate": 0}),
        httpx.Response(200, json={"rate": -1.5}),
        httpx.Response(200, json=[1, 2, 3]),
    ],
)
async def test_indexer_bad_responses_are_source_failures(response):
    source = indexer_with(lambda request: response)
    outcome = await source.attempt(ZRA)
    assert isinstance(outcome, SourceFailed)
    assert outcome.source is RateSourceKind.INDEXER


async def test_indexer_timeout_is_a_source_failure():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    outcome = await indexer_with(handler).attempt(ZRA)
    assert isinstance(outcome, SourceFailed)
    assert "timeout" in outcome.reason.lower()


async def test_indexer_transport_error_raises_source_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SourceError):
        await indexer_with(handler).fetch_rate(ZRA)


async def test_validator_source_prefers_matching_record():
    client = FakeFeeInfoClient(
        [
            TokenFeeInfo(contract_id="$ABC+0000", rate=wire("9")),
            TokenFeeInfo(contract_id=ZRA, rate=wire("0.25"), authorized=True),
        ]
    )
    assert await ValidatorRateSource(client).fetch_rate(ZRA) == Decimal("0.25")


async def test_validator_source_failures():
    empty = ValidatorRateSource(FakeFeeInfoClient([]))
    assert isinstance(await empty.attempt(ZRA), SourceFailed)

    broken = ValidatorRateSource(FakeFeeInfoClient(error=ConnectionError("unavailable")))
    outcome = await broken.attempt(ZRA)
    assert isinstance(outcome, SourceFailed)
    assert "unavailable" in outcome.reason

    garbage = ValidatorRateSource(FakeFeeInfoClient([TokenFeeInfo(contract_id=ZRA, rate="abc")]))
    assert isinstance(await garbage.attempt(ZRA), SourceFailed)


async def test_get_token_rates_returns_authorized_scaled_rates():
    client = FakeFeeInfoClient(
        [
            TokenFeeInfo(contract_id=ZRA, rate=wire("0.10"), authorized=True),
            TokenFeeInfo(contract_id="$ABC+0000", rate=wire("2"), authorized=False),
            TokenFeeInfo(contract_id="$XYZ+0000", rate=None, authorized=True),
        ]
    )
    rates = await get_token_rates(client)
    assert [(r.contract_id, r.rate) for r in rates] == [(ZRA, Decimal("0.1"))]
    assert client.calls == [([], True, False)]

    assert await get_token_rate(client, ZRA) == Decimal("0.1")
    assert await get_token_rate(client, "$ABC+0000") is None


async def test_get_token_rate_validates_and_wraps_errors():
    with pytest.raises(InvalidInstrumentError):
        await get_token_rate(FakeFeeInfoClient(), "")
    with pytest.raises(SourceError, match="Failed to get token rates"):
        await get_token_rates(FakeFeeInfoClient(error=TimeoutError("deadline")))


async def test_indexer_is_only_enabled_with_api_key():
    no_key = Settings(_env_file=None, indexer_api_key=None)
    assert make_rate_sources(no_key) == []

    client = FakeFeeInfoClient()
    sources = make_rate_sources(no_key, validator_client=client)
    assert [s.kind for s in sources] == [RateSourceKind.VALIDATOR]

    keyed = Settings(_env_file=None, indexer_api_key="k")
    sources = make_rate_sources(keyed, validator_client=client)
    assert [s.kind for s in sources] == [RateSourceKind.INDEXER, RateSourceKind.VALIDATOR]
    for source in sources:
        await source.aclose()


async def test_summarize_failures():
    outcomes = [
        SourceFailed(RateSourceKind.INDEXER, "HTTP 401"),
        SourceFailed(RateSourceKind.VALIDATOR, "unreachable"),
    ]
    assert summarize_failures(outcomes) == (
        "indexer failed: HTTP 401; validator failed: unreachable"
    )
    assert summarize_failures([]) == "no live sources configured"


async def test_owned_indexer_client_reopens_after_close():
    source = IndexerRateSource("https://indexer.test", "secret")
    first = source.http_client()
    await source.aclose()
    assert first.is_closed

    second = source.http_client()
    assert second is not first
    assert not second.is_closed
    await source.aclose()


async def test_injected_indexer_client_is_left_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    source = IndexerRateSource("https://indexer.test", "secret", client=client)
    await source.aclose()
    assert not client.is_closed
    assert source.http_client() is client
    await client.aclose()
