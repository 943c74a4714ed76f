#!/usr/bin/env python3
import asyncio
import logging
import time
from typing import Any, Optional

import aiohttp
from aiohttp import ClientSession

logger = logging.getLogger(__name__)

# JSON-RPC error code geth and most providers use for a reverted eth_call
_REVERT_ERROR_CODE = 3


class RpcError(Exception):
    """Base class for JSON-RPC failures."""


class RpcRevertError(RpcError):
    """The node executed the call and the contract reverted."""

    def __init__(self, message: str, data: Optional[str] = None) -> None:
        super().__init__(message)
        self.data = data


class RpcTransportError(RpcError):
    """The request never produced an execution result (timeout, HTTP, rate limit)."""


class JsonRpcClient:
    """Minimal async JSON-RPC client that classifies failures at the source.

    Dispatch is bounded by a semaphore and spaced by a minimum interval so a
    fan-out of quote calls does not burst the endpoint.
    """

    def __init__(
        self,
        session: ClientSession,
        *,
        rpc_url: str,
        timeout: float,
        max_concurrent: int = 3,
        dispatch_interval: float = 0.0,
    ) -> None:
        self._session = session
        self._rpc_url = rpc_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._dispatch_interval = dispatch_interval
        self._dispatch_lock = asyncio.Lock()
        self._last_dispatch = 0.0
        self._id_lock = asyncio.Lock()
        self._next_request_id = 1

    async def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        result = await self.call("eth_call", [{"to": to, "data": data}, block])
        if not isinstance(result, str):
            raise RpcTransportError(f"eth_call returned a non-hex result: {result!r}")
        return result

    async def gas_price(self) -> int:
        result = await self.call("eth_gasPrice", [])
        try:
            return int(result, 16)
        except (TypeError, ValueError):
            raise RpcTransportError(f"eth_gasPrice returned an invalid result: {result!r}") from None

    async def call(self, method: str, params: list) -> Any:
        request_id = await self._get_request_id()
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": request_id,
        }
        async with self._semaphore:
            await self._wait_for_dispatch_slot()
            try:
                async with self._session.post(self._rpc_url, json=payload, timeout=self._timeout) as response:
                    response.raise_for_status()
                    data = await response.json()
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                raise RpcTransportError(f"{method} request failed: {exc!r}") from exc

        if not isinstance(data, dict):
            raise RpcTransportError(f"{method} returned a malformed response")
        if 'error' in data and data['error'] is not None:
            raise self._classify_error(method, data['error'])
        return data.get('result')

    @staticmethod
    def _classify_error(method: str, error: Any) -> RpcError:
        if not isinstance(error, dict):
            return RpcTransportError(f"{method} failed: {error}")
        code = error.get('code')
        message = str(error.get('message') or '')
        revert_data = error.get('data')
        if isinstance(revert_data, dict):
            revert_data = revert_data.get('data')
        if code == _REVERT_ERROR_CODE or 'revert' in message.lower():
            return RpcRevertError(message or "execution reverted", revert_data if isinstance(revert_data, str) else None)
        return RpcTransportError(f"{method} failed ({code}): {message}")

    async def _wait_for_dispatch_slot(self) -> None:
        if self._dispatch_interval <= 0:
            return
        async with self._dispatch_lock:
            elapsed = time.monotonic() - self._last_dispatch
            if elapsed < self._dispatch_interval:
                await asyncio.sleep(self._dispatch_interval - elapsed)
            self._last_dispatch = time.monotonic()

    async def _get_request_id(self) -> int:
        async with self._id_lock:
            request_id = self._next_request_id
            self._next_request_id += 1
        return request_id
