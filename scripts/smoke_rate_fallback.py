"""Smoke script for the rate resolver cache and degraded fallback.

Demonstrates:
 1. First lookup goes to the live source and is cached.
 2. Lookup within TTL is served from the cache (source not called again).
 3. After the TTL passes the live source is queried again.
 4. With the live source down the fallback table answers, and is not cached.

NOTE: This is a lightweight diagnostic and not a formal test.
"""

import asyncio
from decimal import Decimal
from pprint import pprint

from rate_handler.core.logging import init_logging
from rate_handler.models.rates import RateSourceKind
from rate_handler.services.rates.base import RateSource
from rate_handler.services.rates.exceptions import SourceError
from rate_handler.services.rates.resolver import RateResolver


class ScriptedValidator(RateSource):
    kind = RateSourceKind.VALIDATOR

    def __init__(self):
        self.calls = 0
        self.up = True

    async def fetch_rate(self, instrument_id: str) -> Decimal:
        self.calls += 1
        if not self.up:
            raise SourceError("connection refused")
        return Decimal("0.1234")


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def run():
    init_logging()
    clock = Clock()
    validator = ScriptedValidator()
    resolver = RateResolver(sources=[validator], clock=clock)
    out = {}

    out["initial"] = str(await resolver.resolve("$ZRA+0000"))
    clock.now += 1000
    out["within_ttl"] = str(await resolver.resolve("$ZRA+0000"))
    out["calls_after_cached_read"] = validator.calls

    clock.now += resolver.cache_ttl_ms
    out["after_ttl"] = str(await resolver.resolve("$ZRA+0000"))
    out["calls_after_expiry"] = validator.calls

    validator.up = False
    out["degraded_symbol_match"] = str(await resolver.resolve("$ZRA+0042", use_cache=False))
    out["cache"] = resolver.cache_info().model_dump(mode="json")

    pprint(out)


if __name__ == "__main__":
    asyncio.run(run())
