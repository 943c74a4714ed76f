"""Uniswap V3 QuoterV2 client for Base L2."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from constants import V3_CONTRACTS
from services.rpc_client import JsonRpcClient, RpcRevertError, RpcTransportError

logger = logging.getLogger(__name__)

NO_LIQUIDITY = "no_liquidity"
TRANSPORT = "transport"

_QUOTE_EXACT_INPUT_SINGLE = "quoteExactInputSingle((address,address,uint256,uint24,uint160))"
_QUOTE_OUTPUT_TYPES = ["uint256", "uint160", "uint32", "uint256"]


def _selector(signature: str) -> str:
    return bytes(Web3.keccak(text=signature)[:4]).hex()


class QuoteUnavailable(Exception):
    """A fee tier cannot be quoted for this request."""

    def __init__(self, fee_tier: int, reason: str, detail: Optional[str] = None) -> None:
        message = f"fee tier {fee_tier} unavailable ({reason})"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.fee_tier = fee_tier
        self.reason = reason


@dataclass(slots=True)
class QuoterResult:
    amount_out: int
    sqrt_price_x96_after: int
    ticks_crossed: int
    gas_estimate: int


class OnChainQuoteClient:
    """Simulates exact-input single-pool swaps through QuoterV2.

    A reverted simulation means the pool is missing or too thin and is never
    retried. Transport failures get exactly one retry after ``retry_delay``.
    """

    def __init__(
        self,
        rpc: JsonRpcClient,
        *,
        quoter_address: str = V3_CONTRACTS['QUOTER_V2'],
        timeout: float = 8.0,
        retry_delay: float = 0.05,
    ) -> None:
        self._rpc = rpc
        self._quoter_address = Web3.to_checksum_address(quoter_address)
        self._timeout = timeout
        self._retry_delay = retry_delay
        self._selector = _selector(_QUOTE_EXACT_INPUT_SINGLE)

    async def quote(
        self,
        token_in_address: str,
        token_out_address: str,
        amount_in: int,
        fee_tier: int,
    ) -> QuoterResult:
        if amount_in <= 0:
            raise ValueError("amount_in must be positive")

        call_data = self._encode_call(token_in_address, token_out_address, amount_in, fee_tier)
        last_error: Optional[Exception] = None
        for attempt in range(2):
            try:
                raw = await asyncio.wait_for(
                    self._rpc.eth_call(self._quoter_address, call_data),
                    timeout=self._timeout,
                )
            except RpcRevertError as exc:
                raise QuoteUnavailable(fee_tier, NO_LIQUIDITY, str(exc)) from exc
            except (RpcTransportError, asyncio.TimeoutError) as exc:
                last_error = exc
                if attempt == 0:
                    logger.debug("Quote for fee tier %s failed (%s); retrying once", fee_tier, exc)
                    await asyncio.sleep(self._retry_delay)
                continue
            return self._decode_result(raw, fee_tier)

        raise QuoteUnavailable(fee_tier, TRANSPORT, str(last_error)) from last_error

    def _encode_call(self, token_in: str, token_out: str, amount_in: int, fee_tier: int) -> str:
        params = encode(
            ["(address,address,uint256,uint24,uint160)"],
            [(
                Web3.to_checksum_address(token_in),
                Web3.to_checksum_address(token_out),
                amount_in,
                fee_tier,
                0,
            )],
        )
        return "0x" + self._selector + params.hex()

    @staticmethod
    def _decode_result(raw: str, fee_tier: int) -> QuoterResult:
        try:
            blob = bytes.fromhex(raw[2:] if raw.startswith("0x") else raw)
        except ValueError as exc:
            raise QuoteUnavailable(fee_tier, TRANSPORT, "malformed result") from exc
        # An empty return means nothing executed at the quoter address
        if len(blob) < 32 * 4:
            raise QuoteUnavailable(fee_tier, NO_LIQUIDITY, f"short result ({len(blob)} bytes)")
        try:
            amount_out, sqrt_price_after, ticks_crossed, gas_estimate = decode(_QUOTE_OUTPUT_TYPES, blob)
        except DecodingError as exc:
            raise QuoteUnavailable(fee_tier, TRANSPORT, "undecodable result") from exc
        if amount_out <= 0:
            raise QuoteUnavailable(fee_tier, NO_LIQUIDITY, "zero output")
        return QuoterResult(
            amount_out=int(amount_out),
            sqrt_price_x96_after=int(sqrt_price_after),
            ticks_crossed=int(ticks_crossed),
            gas_estimate=int(gas_estimate),
        )
