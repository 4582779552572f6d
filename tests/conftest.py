"""Shared fixtures: a manual clock, fake live sources and a fake validator client."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Sequence

import pytest

from rate_handler.models.rates import RateSourceKind, TokenFeeInfo, TokenFeeInfoResponse
from rate_handler.services.rates.base import RateSource
from rate_handler.services.rates.exceptions import SourceError
from rate_handler.services.rates.resolver import RateResolver

ZRA = "$ZRA+0000"


class ManualClock:
    def __init__(self, start_ms: float = 1_000_000.0):
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeSource(RateSource):
    """Live source returning queued answers; an Exception instance is raised."""

    def __init__(self, kind: RateSourceKind, *answers):
        self.kind = kind
        self._answers = list(answers)
        self.calls: List[str] = []
        self.closed = False

    def push(self, answer) -> None:
        self._answers.append(answer)

    def set_answers(self, *answers) -> None:
        self._answers = list(answers)

    async def fetch_rate(self, instrument_id: str) -> Decimal:
        self.calls.append(instrument_id)
        if not self._answers:
            raise SourceError("unreachable")
        answer = self._answers.pop(0) if len(self._answers) > 1 else self._answers[0]
        if isinstance(answer, Exception):
            raise answer
        return Decimal(str(answer))

    async def aclose(self) -> None:
        self.closed = True


class FakeFeeInfoClient:
    def __init__(
        self,
        tokens: Sequence[TokenFeeInfo] = (),
        error: Optional[Exception] = None,
    ):
        self.tokens = list(tokens)
        self.error = error
        self.calls: list = []

    async def get_token_fee_info(
        self, contract_ids, *, include_rates=True, include_contract_fees=False
    ) -> TokenFeeInfoResponse:
        self.calls.append((list(contract_ids), include_rates, include_contract_fees))
        if self.error is not None:
            raise self.error
        return TokenFeeInfoResponse(tokens=self.tokens)


def wire(rate: str) -> str:
    """Human rate -> 10^18 fixed-point string."""
    return str(int(Decimal(rate) * (Decimal(10) ** 18)))


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def unreachable_validator() -> FakeSource:
    return FakeSource(RateSourceKind.VALIDATOR, SourceError("connection refused"))


@pytest.fixture
def make_resolver(clock):
    def _make(*sources: RateSource, **kwargs) -> RateResolver:
        kwargs.setdefault("cache_ttl_ms", 3000)
        return RateResolver(sources=sources, clock=clock, **kwargs)

    return _make
