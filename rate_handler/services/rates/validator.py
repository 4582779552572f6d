from __future__ import annotations

"""Validator fee-info boundary.

The transport to the validator (gRPC in production) lives outside this
package; anything implementing `FeeInfoClient` can be plugged in. The helpers
here only interpret the response: rates arrive as 10^18 fixed-point strings.
"""
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence

from rate_handler.models.rates import TokenFeeInfo, TokenFeeInfoResponse, TokenRate
from rate_handler.services.money import from_wire_rate

from .exceptions import InvalidInstrumentError, SourceError


class FeeInfoClient(Protocol):
    async def get_token_fee_info(
        self,
        contract_ids: Sequence[str],
        *,
        include_rates: bool = True,
        include_contract_fees: bool = False,
    ) -> TokenFeeInfoResponse: ...


def pick_token(response: TokenFeeInfoResponse, contract_id: str) -> Optional[TokenFeeInfo]:
    """Record for `contract_id`, else the first record of the response."""
    if not response.tokens:
        return None
    for token in response.tokens:
        if token.contract_id == contract_id:
            return token
    return response.tokens[0]


def token_rate(token: TokenFeeInfo) -> Decimal:
    if token.rate is None:
        raise SourceError(f"validator returned no rate for {token.contract_id}")
    try:
        return from_wire_rate(token.rate)
    except ValueError as e:
        raise SourceError(f"malformed validator rate {token.rate!r}: {e}") from e


async def get_token_rates(
    client: FeeInfoClient, contract_ids: Sequence[str] = ()
) -> List[TokenRate]:
    """All authorized token rates reported by the validator.

    An empty `contract_ids` asks the validator for every token it knows.
    """
    try:
        response = await client.get_token_fee_info(
            list(contract_ids), include_rates=True, include_contract_fees=False
        )
    except Exception as e:
        raise SourceError(f"Failed to get token rates from validator: {e}") from e
    return [
        TokenRate(contract_id=t.contract_id, rate=token_rate(t))
        for t in response.tokens
        if t.authorized and t.rate is not None
    ]


async def get_token_rate(client: FeeInfoClient, contract_id: str) -> Optional[Decimal]:
    if not isinstance(contract_id, str) or not contract_id:
        raise InvalidInstrumentError("Contract ID must be a non-empty string")
    for token in await get_token_rates(client, [contract_id]):
        if token.contract_id == contract_id:
            return token.rate
    return None
