#!/usr/bin/env python3
import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

import aiohttp

from config import AppConfig
from constants import FEE_TIER_LABELS, QUOTE_SOURCE_SIMULATED, RELIABLE_TICKS_CROSSED, V3_FEE_TIERS
from routing.errors import NoLiquidity
from routing.models import AnalysisResult, RouteQuote, TierQuote, TokenPair
from routing.tokens import format_units, get_pair, to_base_units
from services.coingecko_client import CoinGeckoClient
from services.graph_client import GraphClient
from services.price_oracle import PriceOracle
from services.quote_providers import QuoteProvider, build_quote_provider
from services.quoter_client import QuoteUnavailable
from services.rpc_client import JsonRpcClient

logger = logging.getLogger(__name__)

WEI_PER_ETH_EXPONENT = 18


def fee_tier_label(fee_tier: int) -> str:
    return FEE_TIER_LABELS.get(fee_tier, f"{fee_tier / 10_000:g}%")


def estimate_price_impact(fee_tier: int) -> float:
    """Signed impact percentage driven by the pool fee alone.

    This is not a depth simulation; it only guarantees that a higher fee tier
    never reports a better impact than a lower one.
    """
    return -(fee_tier / 10_000)


def gas_cost_usd(gas_estimate: int, gas_price_wei: int, eth_price_usd: float) -> float:
    cost_eth = Decimal(gas_estimate * gas_price_wei).scaleb(-WEI_PER_ETH_EXPONENT)
    return float(cost_eth * Decimal(str(eth_price_usd)))


class RouteRankingEngine:
    """Quotes every fee tier concurrently and ranks the surviving routes."""

    def __init__(
        self,
        provider: QuoteProvider,
        oracle: PriceOracle,
        fee_tiers: Iterable[int] = V3_FEE_TIERS,
    ):
        self.provider = provider
        self.oracle = oracle
        self.fee_tiers = tuple(fee_tiers)

    @property
    def source(self) -> str:
        return getattr(self.provider, 'name', type(self.provider).__name__)

    async def analyze(self, from_symbol: str, to_symbol: str, amount_in: str) -> AnalysisResult:
        """Returns routes ordered by output, best first.

        Raises UnknownToken, UnsupportedPair or InvalidAmount before any network
        call, and NoLiquidity when no fee tier can be quoted.
        """
        pair = get_pair(from_symbol, to_symbol)
        amount_in_base = to_base_units(amount_in, pair.from_token.decimals)

        tier_tasks = [self._quote_tier(pair, amount_in_base, fee_tier) for fee_tier in self.fee_tiers]
        gas_price_wei, eth_price_usd, *tier_quotes = await asyncio.gather(
            self.oracle.current_gas_price(),
            self.oracle.reference_price_usd(),
            *tier_tasks,
        )

        routes = [
            self._build_route(pair, quote, gas_price_wei, eth_price_usd)
            for quote in tier_quotes
            if quote is not None
        ]
        if not routes:
            raise NoLiquidity(pair.from_token.symbol, pair.to_token.symbol)

        ranked = self.rank_routes(routes)
        logger.info(
            "Ranked %d/%d routes for %s %s (best: %s)",
            len(ranked), len(self.fee_tiers), amount_in, pair.label, ranked[0].route,
        )
        return AnalysisResult(
            pair=pair,
            amount_in=str(amount_in).strip(),
            amount_in_base_units=amount_in_base,
            routes=tuple(ranked),
            reference_price_usd=eth_price_usd,
            gas_price_wei=gas_price_wei,
            source=self.source,
            timestamp=datetime.now(timezone.utc),
        )

    @staticmethod
    def rank_routes(routes: List[RouteQuote]) -> List[RouteQuote]:
        """Sorts by output descending, lower fee first on ties, and flags the winner."""
        ranked = sorted(routes, key=lambda route: (-route.amount_out, route.fee_tier))
        ranked = [replace(route, is_best=False) for route in ranked]
        if ranked:
            ranked[0] = replace(ranked[0], is_best=True)
        return ranked

    async def _quote_tier(self, pair: TokenPair, amount_in: int, fee_tier: int) -> Optional[TierQuote]:
        try:
            quote = await self.provider.quote(pair.from_token, pair.to_token, amount_in, fee_tier)
        except QuoteUnavailable as exc:
            logger.info("No route for %s at %s: %s", pair.label, fee_tier_label(fee_tier), exc.reason)
            return None
        except Exception as exc:
            logger.warning("Quote for %s at %s failed unexpectedly: %s", pair.label, fee_tier_label(fee_tier), exc)
            return None
        if quote.amount_out <= 0:
            return None
        return quote

    @staticmethod
    def _build_route(pair: TokenPair, quote: TierQuote, gas_price_wei: int, eth_price_usd: float) -> RouteQuote:
        label = fee_tier_label(quote.fee_tier)
        return RouteQuote(
            fee_tier=quote.fee_tier,
            fee_label=label,
            amount_out=quote.amount_out,
            amount_out_formatted=format_units(quote.amount_out, pair.to_token.decimals),
            gas_estimate=quote.gas_estimate,
            gas_cost_usd=gas_cost_usd(quote.gas_estimate, gas_price_wei, eth_price_usd),
            price_impact_pct=estimate_price_impact(quote.fee_tier),
            price_impact_reliable=quote.ticks_crossed <= RELIABLE_TICKS_CROSSED,
            route=f"{pair.from_token.symbol} -> [{label}] -> {pair.to_token.symbol}",
        )


def build_engine(config: AppConfig, session: aiohttp.ClientSession) -> RouteRankingEngine:
    """Wires the configured quote provider and price oracle around one HTTP session."""
    rpc = JsonRpcClient(
        session,
        rpc_url=config.rpc_url,
        timeout=config.quote_timeout,
        max_concurrent=config.max_concurrent_rpc,
        dispatch_interval=config.rpc_dispatch_interval,
    )
    provider = build_quote_provider(config, session, rpc)
    if config.quote_source == QUOTE_SOURCE_SIMULATED:
        # offline: gas and ETH price come from the fallback constants
        oracle = PriceOracle(
            None,
            fallback_gas_price_wei=config.fallback_gas_price_wei,
            fallback_eth_price_usd=config.fallback_eth_price_usd,
        )
        return RouteRankingEngine(provider, oracle)

    graph_client = GraphClient(session, config.graph_api_key) if config.graph_api_key else None
    oracle = PriceOracle(
        rpc,
        CoinGeckoClient(session, config.coingecko_api_key),
        graph_client,
        fallback_gas_price_wei=config.fallback_gas_price_wei,
        fallback_eth_price_usd=config.fallback_eth_price_usd,
    )
    return RouteRankingEngine(provider, oracle)
