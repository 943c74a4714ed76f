#!/usr/bin/env python3
import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from constants import GRAPH_API_BASE_URL, PRICE_FEED_TIMEOUT, UNISWAP_V3_BASE_SUBGRAPH_ID

logger = logging.getLogger(__name__)

ETH_PRICE_QUERY = """
  query EthPrice {
    bundle(id: "1") {
      ethPriceUSD
    }
  }
"""


class GraphClient:
    """Reads the Uniswap V3 Base subgraph through The Graph gateway."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str,
        *,
        subgraph_id: str = UNISWAP_V3_BASE_SUBGRAPH_ID,
        timeout: float = PRICE_FEED_TIMEOUT,
    ):
        self.session = session
        self.url = f"{GRAPH_API_BASE_URL}/{api_key}/subgraphs/id/{subgraph_id}"
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        body = {'query': query, 'variables': variables or {}}
        try:
            async with self.session.post(self.url, json=body, timeout=self.timeout) as response:
                response.raise_for_status()
                result = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Graph API request failed: %s", exc)
            return None
        if not isinstance(result, dict) or result.get('errors'):
            logger.warning("GraphQL errors: %s", result.get('errors') if isinstance(result, dict) else result)
            return None
        return result.get('data')

    async def get_eth_price_in_usd(self) -> Optional[float]:
        data = await self.query(ETH_PRICE_QUERY)
        bundle = (data or {}).get('bundle') or {}
        try:
            price = float(bundle.get('ethPriceUSD'))
        except (TypeError, ValueError):
            return None
        return price if price > 0 else None
