from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from rate_handler.models.rates import CacheSnapshotEntry, RateSourceKind
from rate_handler.services.money import format_decimal

"""In-memory rate cache.

Design:
    - One entry per instrument id holding the last resolved rate, the time it
      was stored and where it came from.
    - Entries are replaced as a unit; a put never merges with the previous
      entry, so concurrent writers resolve to last-writer-wins.
    - No eviction: staleness is decided when an entry is read by comparing its
      age with the TTL. Entries only disappear on clear().
    - Time comes from an injectable millisecond clock so tests can move it.
"""

logger = logging.getLogger("rate_handler.cache")

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class CacheEntry:
    rate: Decimal
    timestamp_ms: float
    source: RateSourceKind


class RateCache:
    def __init__(self, ttl_ms: int, clock: Clock | None = None):
        if ttl_ms <= 0:
            raise ValueError("cache ttl must be positive milliseconds")
        self._ttl_ms = ttl_ms
        self._clock: Clock = clock or monotonic_ms
        self._entries: Dict[str, CacheEntry] = {}

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def now(self) -> float:
        return self._clock()

    def age_ms(self, entry: CacheEntry) -> float:
        return self._clock() - entry.timestamp_ms

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self.age_ms(entry) < self._ttl_ms

    def get(self, instrument_id: str) -> Optional[CacheEntry]:
        return self._entries.get(instrument_id)

    def get_fresh(self, instrument_id: str) -> Optional[CacheEntry]:
        entry = self._entries.get(instrument_id)
        if entry is None:
            logger.debug("cache miss for %s", instrument_id)
            return None
        if not self.is_fresh(entry):
            logger.debug("cache entry for %s expired", instrument_id)
            return None
        logger.debug("cache hit for %s (%s)", instrument_id, entry.source.value)
        return entry

    def put(self, instrument_id: str, rate: Decimal, source: RateSourceKind) -> None:
        self._entries[instrument_id] = CacheEntry(
            rate=rate, timestamp_ms=self._clock(), source=source
        )

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot(self) -> List[CacheSnapshotEntry]:
        now = self._clock()
        out = []
        for instrument_id, entry in list(self._entries.items()):
            age = now - entry.timestamp_ms
            out.append(
                CacheSnapshotEntry(
                    instrument_id=instrument_id,
                    rate=format_decimal(entry.rate),
                    age_ms=int(age),
                    expired=age >= self._ttl_ms,
                    source=entry.source,
                )
            )
        return out
