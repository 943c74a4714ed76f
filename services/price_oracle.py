"""Advisory gas-price and ETH/USD inputs with fixed fallbacks."""
from __future__ import annotations

import logging
import math
from typing import Optional

from constants import DEFAULT_FALLBACK_ETH_PRICE_USD, DEFAULT_FALLBACK_GAS_PRICE_WEI
from services.coingecko_client import CoinGeckoClient
from services.graph_client import GraphClient
from services.rpc_client import JsonRpcClient

logger = logging.getLogger(__name__)


class PriceOracle:
    """Never raises: every failure path ends at a configured fallback constant."""

    def __init__(
        self,
        rpc: Optional[JsonRpcClient],
        coingecko_client: Optional[CoinGeckoClient] = None,
        graph_client: Optional[GraphClient] = None,
        *,
        fallback_gas_price_wei: int = DEFAULT_FALLBACK_GAS_PRICE_WEI,
        fallback_eth_price_usd: float = DEFAULT_FALLBACK_ETH_PRICE_USD,
    ) -> None:
        self._rpc = rpc
        self._coingecko_client = coingecko_client
        self._graph_client = graph_client
        self.fallback_gas_price_wei = fallback_gas_price_wei
        self.fallback_eth_price_usd = fallback_eth_price_usd

    async def current_gas_price(self) -> int:
        """Gas price in wei."""
        if self._rpc is None:
            return self.fallback_gas_price_wei
        try:
            gas_price = await self._rpc.gas_price()
        except Exception as exc:
            logger.warning("Gas price lookup failed (%s); using fallback %s wei", exc, self.fallback_gas_price_wei)
            return self.fallback_gas_price_wei
        if gas_price <= 0:
            return self.fallback_gas_price_wei
        return gas_price

    async def reference_price_usd(self) -> float:
        """ETH/USD from CoinGecko, then The Graph, then the fallback constant."""
        for name, source in (('coingecko', self._coingecko_client), ('graph', self._graph_client)):
            if source is None:
                continue
            try:
                price = await source.get_eth_price_in_usd()
            except Exception as exc:
                logger.warning("ETH price lookup via %s failed: %s", name, exc)
                continue
            if price is not None and math.isfinite(price) and price > 0:
                return float(price)
        logger.info("Using fallback ETH price $%.2f", self.fallback_eth_price_usd)
        return self.fallback_eth_price_usd
