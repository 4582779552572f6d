from __future__ import annotations

"""Rate source abstraction.

Each live source answers one question: what is the USD rate for this
instrument right now. `attempt()` turns the answer into a tagged outcome so
the resolver can walk an ordered list of sources without try/except at every
step.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Union

from rate_handler.models.rates import RateSourceKind

from .exceptions import RateError, SourceError

logger = logging.getLogger("rate_handler.sources")


@dataclass(frozen=True)
class RateFound:
    source: RateSourceKind
    rate: Decimal


@dataclass(frozen=True)
class SourceFailed:
    source: RateSourceKind
    reason: str


StepOutcome = Union[RateFound, SourceFailed]


class RateSource(ABC):
    kind: RateSourceKind

    @abstractmethod
    async def fetch_rate(self, instrument_id: str) -> Decimal:
        """Return USD per 1 unit of the instrument or raise SourceError."""
        raise NotImplementedError

    async def attempt(self, instrument_id: str) -> StepOutcome:
        try:
            rate = await self.fetch_rate(instrument_id)
        except (SourceError, RateError) as e:
            return SourceFailed(self.kind, str(e))
        except Exception as e:  # adapters are best-effort; never fatal here
            logger.debug("unexpected %s failure", self.kind.value, exc_info=True)
            return SourceFailed(self.kind, f"{type(e).__name__}: {e}")
        return RateFound(self.kind, rate)

    async def aclose(self) -> None:
        return None


def summarize_failures(outcomes: Iterable[StepOutcome]) -> str:
    failures = [o for o in outcomes if isinstance(o, SourceFailed)]
    if not failures:
        return "no live sources configured"
    return "; ".join(f"{f.source.value} failed: {f.reason}" for f in failures)
