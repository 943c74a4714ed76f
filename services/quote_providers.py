"""Interchangeable per-fee-tier quote sources.

The route engine depends only on ``QuoteProvider``. Which implementation
backs it is decided once, at startup, by ``build_quote_provider``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol, Tuple

import aiohttp

import constants
from config import AppConfig
from routing.models import TierQuote, Token
from routing.tokens import quote_address
from services.quoter_client import NO_LIQUIDITY, TRANSPORT, OnChainQuoteClient, QuoteUnavailable
from services.rpc_client import JsonRpcClient
from services.uniswap_api_client import UniswapApiClient

logger = logging.getLogger(__name__)


class QuoteProvider(Protocol):
    name: str

    async def quote(self, token_in: Token, token_out: Token, amount_in: int, fee_tier: int) -> TierQuote:
        """Returns a quote for one fee tier or raises QuoteUnavailable."""
        ...


class OnChainQuoteProvider:
    name = constants.QUOTE_SOURCE_ONCHAIN

    def __init__(self, client: OnChainQuoteClient) -> None:
        self._client = client

    async def quote(self, token_in: Token, token_out: Token, amount_in: int, fee_tier: int) -> TierQuote:
        result = await self._client.quote(quote_address(token_in), quote_address(token_out), amount_in, fee_tier)
        return TierQuote(
            fee_tier=fee_tier,
            amount_out=result.amount_out,
            gas_estimate=result.gas_estimate,
            sqrt_price_x96_after=result.sqrt_price_x96_after,
            ticks_crossed=result.ticks_crossed,
        )


class AggregatorQuoteProvider:
    """Maps the routing API's single best route onto the fee tier it uses.

    One API call serves every tier of a request; the pending call is shared
    for ``share_ttl`` seconds. Only single-pool V3 routes map to a tier.
    """

    name = constants.QUOTE_SOURCE_AGGREGATOR

    def __init__(self, client: UniswapApiClient, *, share_ttl: float = 2.0) -> None:
        self._client = client
        self._share_ttl = share_ttl
        self._pending: Dict[Tuple[str, str, int], Tuple[asyncio.Task, float]] = {}

    async def quote(self, token_in: Token, token_out: Token, amount_in: int, fee_tier: int) -> TierQuote:
        payload = await self._shared_quote(quote_address(token_in), quote_address(token_out), amount_in)
        if payload is None:
            raise QuoteUnavailable(fee_tier, TRANSPORT, "routing API unavailable")

        route_fee = self._single_pool_fee(payload)
        if route_fee != fee_tier:
            raise QuoteUnavailable(fee_tier, NO_LIQUIDITY, "not selected by the routing API")

        try:
            amount_out = int(payload.get('quote') or 0)
            gas_estimate = int(payload.get('gasUseEstimate') or 0)
        except (TypeError, ValueError):
            raise QuoteUnavailable(fee_tier, TRANSPORT, "malformed routing API quote") from None
        if amount_out <= 0:
            raise QuoteUnavailable(fee_tier, NO_LIQUIDITY, "zero output")
        return TierQuote(fee_tier=fee_tier, amount_out=amount_out, gas_estimate=gas_estimate)

    async def _shared_quote(self, token_in: str, token_out: str, amount_in: int) -> Optional[Dict[str, Any]]:
        now = time.monotonic()
        for key in [k for k, (_, created) in self._pending.items() if now - created > self._share_ttl]:
            del self._pending[key]

        key = (token_in.lower(), token_out.lower(), amount_in)
        entry = self._pending.get(key)
        if entry is None:
            task = asyncio.ensure_future(self._client.get_quote(token_in, token_out, amount_in))
            self._pending[key] = (task, now)
        else:
            task = entry[0]
        return await asyncio.shield(task)

    @staticmethod
    def _single_pool_fee(payload: Dict[str, Any]) -> Optional[int]:
        route = payload.get('route')
        if not isinstance(route, list) or len(route) != 1:
            return None
        hops = route[0]
        if not isinstance(hops, list) or len(hops) != 1 or not isinstance(hops[0], dict):
            return None
        pool = hops[0]
        if str(pool.get('type', 'v3-pool')).lower() != 'v3-pool':
            return None
        try:
            return int(pool.get('fee'))
        except (TypeError, ValueError):
            return None


class SimulatedQuoteProvider:
    """Deterministic offline quotes from a static USD price table.

    Every tier has a pool; output shrinks with the tier's fee.
    """

    name = constants.QUOTE_SOURCE_SIMULATED

    def __init__(
        self,
        usd_prices: Optional[Dict[str, float]] = None,
        gas_estimates: Optional[Dict[int, int]] = None,
    ) -> None:
        self._usd_prices = {k.upper(): v for k, v in (usd_prices or constants.SIMULATED_USD_PRICES).items()}
        self._gas_estimates = gas_estimates or constants.SIMULATED_GAS_ESTIMATES

    async def quote(self, token_in: Token, token_out: Token, amount_in: int, fee_tier: int) -> TierQuote:
        price_in = self._usd_prices.get(token_in.symbol.upper())
        price_out = self._usd_prices.get(token_out.symbol.upper())
        if not price_in or not price_out:
            raise QuoteUnavailable(fee_tier, NO_LIQUIDITY, "no simulated price")

        amount_in_human = Decimal(amount_in).scaleb(-token_in.decimals)
        fee_multiplier = Decimal(1_000_000 - fee_tier) / Decimal(1_000_000)
        amount_out_human = amount_in_human * Decimal(str(price_in)) / Decimal(str(price_out)) * fee_multiplier
        amount_out = int(amount_out_human.scaleb(token_out.decimals))
        if amount_out <= 0:
            raise QuoteUnavailable(fee_tier, NO_LIQUIDITY, "zero output")
        return TierQuote(
            fee_tier=fee_tier,
            amount_out=amount_out,
            gas_estimate=self._gas_estimates.get(fee_tier, 150000),
        )


def build_quote_provider(
    config: AppConfig,
    session: aiohttp.ClientSession,
    rpc: JsonRpcClient,
) -> QuoteProvider:
    """Selects the quote source named in the configuration."""
    if config.quote_source == constants.QUOTE_SOURCE_SIMULATED:
        return SimulatedQuoteProvider()
    if config.quote_source == constants.QUOTE_SOURCE_AGGREGATOR:
        if not config.uniswap_api_key:
            raise ValueError(f"{constants.UNISWAP_API_KEY_ENV_VAR} is required for the aggregator quote source")
        return AggregatorQuoteProvider(UniswapApiClient(session, config.uniswap_api_key, timeout=config.quote_timeout))
    client = OnChainQuoteClient(
        rpc,
        timeout=config.quote_timeout,
        retry_delay=config.quote_retry_delay,
    )
    return OnChainQuoteProvider(client)
