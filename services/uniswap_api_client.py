#!/usr/bin/env python3
import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from constants import BASE_CHAIN_ID, UNISWAP_API_BASE_URL

logger = logging.getLogger(__name__)


class UniswapApiClient:
    """Thin client for the Uniswap Labs routing API (exact-input V3 quotes)."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str,
        *,
        base_url: str = UNISWAP_API_BASE_URL,
        timeout: float = 10.0,
    ):
        self.session = session
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_quote(self, token_in: str, token_out: str, amount_in: int) -> Optional[Dict[str, Any]]:
        """Returns the decoded quote payload, or None when the API call fails."""
        body = {
            'tokenIn': token_in,
            'tokenInChainId': BASE_CHAIN_ID,
            'tokenOut': token_out,
            'tokenOutChainId': BASE_CHAIN_ID,
            'amount': str(amount_in),
            'type': 'EXACT_INPUT',
            'protocols': ['v3'],
            'slippageTolerance': 50,  # bps
        }
        headers = {'x-api-key': self.api_key, 'Content-Type': 'application/json'}
        try:
            async with self.session.post(f"{self.base_url}/quote", json=body, headers=headers, timeout=self.timeout) as response:
                response.raise_for_status()
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Uniswap API quote failed: %s", exc)
            return None
        if not isinstance(data, dict):
            logger.warning("Uniswap API returned an unexpected payload: %r", data)
            return None
        return data.get('quote') if isinstance(data.get('quote'), dict) else data
