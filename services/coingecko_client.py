#!/usr/bin/env python3
import asyncio
import logging
from typing import Optional, Dict, List

import aiohttp
from constants import COINGECKO_API_BASE_URL, PRICE_FEED_RETRIES, PRICE_FEED_RETRY_DELAY, PRICE_FEED_TIMEOUT

logger = logging.getLogger(__name__)

async def api_get(url: str, session: aiohttp.ClientSession, params: Optional[Dict] = None, headers: Optional[Dict] = None, retries: int = 3, timeout: float = 10, retry_delay: float = 2) -> Optional[Dict]:
    """Makes an async GET request with retries and timeout."""
    for attempt in range(retries):
        try:
            async with session.get(url, params=params, headers=headers, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
                response.raise_for_status()
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            if attempt < retries - 1:
                logger.debug("API request to %s failed (%s); retrying", url, e)
                await asyncio.sleep(retry_delay)
            else:
                logger.warning("API request to %s failed after %d attempts: %s", url, retries, e)
                return None
    return None

class CoinGeckoClient:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: Optional[str] = None,
        *,
        retries: int = PRICE_FEED_RETRIES,
        timeout: float = PRICE_FEED_TIMEOUT,
        retry_delay: float = PRICE_FEED_RETRY_DELAY,
    ):
        self.session = session
        self.api_key = api_key
        self.headers = {'x-cg-demo-api-key': self.api_key} if self.api_key else {}
        self.retries = retries
        self.timeout = timeout
        self.retry_delay = retry_delay

    async def get_price(self, coin_ids: List[str], vs_currencies: List[str]) -> Optional[Dict]:
        url = f"{COINGECKO_API_BASE_URL}/simple/price"
        params = {'ids': ",".join(coin_ids), 'vs_currencies': ",".join(vs_currencies)}
        return await api_get(
            url,
            self.session,
            params=params,
            headers=self.headers,
            retries=self.retries,
            timeout=self.timeout,
            retry_delay=self.retry_delay,
        )

    async def get_eth_price_in_usd(self) -> Optional[float]:
        prices = await self.get_price(coin_ids=['ethereum'], vs_currencies=['usd'])
        if prices and 'ethereum' in prices and 'usd' in prices['ethereum']:
            try:
                return float(prices['ethereum']['usd'])
            except (TypeError, ValueError):
                pass
        logger.warning("Could not parse ETH price from CoinGecko API response.")
        return None
