import asyncio
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from rate_handler.core.config import Settings, get_settings
from rate_handler.main import create_app
from rate_handler.models.rates import RateSourceKind
from rate_handler.services.rates.exceptions import SourceError
from rate_handler.services.rates.resolver import RateResolver, get_exchange_rate, get_rate_resolver

from conftest import ZRA, FakeSource

ZRA_PATH = "/rates/%24ZRA%2B0000"


def build_client(*sources, admin: bool = True, **resolver_kwargs) -> TestClient:
    settings = Settings(_env_file=None, enable_rate_admin=admin)
    resolver_kwargs.setdefault("fallback_rates", {ZRA: "0.10"})
    resolver_kwargs.setdefault("minimum_rates", {ZRA: "0.10"})
    resolver = RateResolver(sources=sources, **resolver_kwargs)
    return TestClient(create_app(settings, resolver=resolver))


@pytest.fixture
def validator():
    return FakeSource(RateSourceKind.VALIDATOR, "0.25")


@pytest.fixture
def client(validator):
    with build_client(validator) as c:
        yield c


def test_health_lists_sources(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "sources": ["validator"], "safeguards_enabled": True}


def test_get_rate_and_request_id(client):
    r = client.get(ZRA_PATH, headers={"x-request-id": "abc-123"})
    assert r.status_code == 200
    assert r.json() == {"instrument_id": ZRA, "rate": "0.25"}
    assert r.headers["x-request-id"] == "abc-123"


def test_convert_both_directions(client):
    r = client.get(f"{ZRA_PATH}/convert", params={"amount": "5"})
    assert r.status_code == 200
    body = r.json()
    assert body["direction"] == "usd_to_instrument"
    assert body["rate"] == "0.25"
    assert body["converted"] == "20"

    r = client.get(
        f"{ZRA_PATH}/convert", params={"amount": "20", "direction": "instrument_to_usd"}
    )
    assert r.json()["converted"] == "5.00"


def test_invalid_amount_is_422(client):
    r = client.get(f"{ZRA_PATH}/convert", params={"amount": "-3"})
    assert r.status_code == 422
    assert r.json()["error"] == "invalid_input"


def test_unknown_instrument_without_fallback_is_503(validator):
    validator.set_answers(SourceError("down"))
    with build_client(validator) as c:
        r = c.get("/rates/%24BTC%2B0001")
    assert r.status_code == 503
    body = r.json()
    assert body["error"] == "rate_unavailable"
    assert body["instrument_id"] == "$BTC+0001"
    assert "Please add a fallback rate" in body["detail"]


def test_degraded_lookup_serves_fallback(validator):
    validator.set_answers(SourceError("down"))
    with build_client(validator) as c:
        r = c.get("/rates/%24ZRA%2B0042")
        assert r.json()["rate"] == "0.10"
        info = c.get("/rates/%24ZRA%2B0042/fallback").json()
    assert info == {"rate": "0.10", "source": "symbol_match", "source_key": ZRA}


def test_fallback_info_404_when_no_match(client):
    r = client.get("/rates/%24BTC%2B0001/fallback")
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


def test_cache_info_and_clear(client):
    client.get(ZRA_PATH)
    info = client.get("/rates/cache").json()
    assert info["size"] == 1
    assert info["ttl_ms"] == 3000
    assert info["entries"][0]["instrument_id"] == ZRA
    assert info["entries"][0]["source"] == "validator"

    assert client.delete("/rates/cache").json() == {"status": "cleared"}
    assert client.get("/rates/cache").json()["size"] == 0


def test_submission_is_cached(client):
    r = client.post(
        "/rates/%24ABC%2B0001/submissions", json={"rate": "1.5", "source": "indexer"}
    )
    assert r.status_code == 200
    assert r.json()["rate"] == "1.5"
    entries = client.get("/rates/cache").json()["entries"]
    assert [(e["instrument_id"], e["source"]) for e in entries] == [("$ABC+0001", "indexer")]


def test_submission_from_fallback_is_rejected(client):
    r = client.post(f"{ZRA_PATH}/submissions", json={"rate": "1.5", "source": "fallback"})
    assert r.status_code == 422


def test_admin_updates(client, validator):
    r = client.put("/rates/minimum-rates", json={"rates": {ZRA: "0.30"}})
    assert r.status_code == 200
    assert r.json()["minimum_rates"][ZRA] == "0.30"
    assert client.get(ZRA_PATH).json()["rate"] == "0.30"

    assert client.put("/rates/safeguards", json={"enabled": False}).json()["enabled"] is False
    assert client.get(ZRA_PATH).json()["rate"] == "0.25"

    r = client.put("/rates/fallback-rates", json={"rates": {"$ABC+0000": "2"}})
    assert r.json()["fallback_rates"] == {ZRA: "0.10", "$ABC+0000": "2"}

    r = client.put("/rates/fallback-rates", json={"rates": {"$ABC+0000": "lots"}})
    assert r.status_code == 422


def test_admin_endpoints_can_be_disabled(validator):
    with build_client(validator, admin=False) as c:
        r = c.delete("/rates/cache")
        assert r.status_code == 403
        assert r.json() == {"error": "http_error", "detail": "rate admin feature disabled"}
        assert c.put("/rates/safeguards", json={"enabled": False}).status_code == 403
        # reads stay available
        assert c.get("/rates/cache").status_code == 200


def test_lifespan_closes_sources(validator):
    with build_client(validator):
        assert validator.closed is False
    assert validator.closed is True


@pytest.fixture
def fresh_defaults(monkeypatch):
    for name in ("INDEXER_API_KEY", "FALLBACK_RATES", "MINIMUM_RATES", "RATES_CACHE_TTL_MS"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    get_rate_resolver.cache_clear()
    yield
    get_settings.cache_clear()
    get_rate_resolver.cache_clear()


def test_default_app_shares_the_process_resolver(fresh_defaults):
    app = create_app()
    assert app.state.rate_resolver is get_rate_resolver()

    with TestClient(app) as c:
        r = c.put("/rates/fallback-rates", json={"rates": {"$ABC+0000": "2"}})
        assert r.status_code == 200

    assert get_rate_resolver().fallback_rates()["$ABC+0000"] == "2"
    assert asyncio.run(get_exchange_rate("$ABC+0001")) == Decimal("2")


def test_settings_override_is_validated():
    with pytest.raises(ValueError):
        create_app(Settings(_env_file=None, rates_cache_ttl_ms=0))
    with pytest.raises(ValueError):
        create_app(Settings(_env_file=None, fallback_rates={ZRA: "n/a"}))
