import asyncio

import pytest
from eth_abi import decode, encode

from services.quoter_client import NO_LIQUIDITY, TRANSPORT, OnChainQuoteClient, QuoteUnavailable
from services.rpc_client import RpcRevertError, RpcTransportError

USDC = '0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913'
WETH = '0x4200000000000000000000000000000000000006'


def _quoter_result(amount_out, sqrt_price=2 ** 96, ticks=1, gas=120_000) -> str:
    return '0x' + encode(['uint256', 'uint160', 'uint32', 'uint256'], [amount_out, sqrt_price, ticks, gas]).hex()


class FakeRpc:
    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.calls = []

    async def eth_call(self, to, data, block="latest"):
        self.calls.append((to, data))
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome == 'hang':
            await asyncio.sleep(10)
        return outcome


def _client(rpc, **kwargs):
    kwargs.setdefault('retry_delay', 0)
    return OnChainQuoteClient(rpc, **kwargs)


@pytest.mark.asyncio
async def test_quote_decodes_quoter_result():
    rpc = FakeRpc([_quoter_result(542_000_000_000_000, ticks=2, gas=95_000)])
    client = _client(rpc)

    result = await client.quote(USDC, WETH, 1_000_000, 500)

    assert result.amount_out == 542_000_000_000_000
    assert result.ticks_crossed == 2
    assert result.gas_estimate == 95_000
    assert len(rpc.calls) == 1


@pytest.mark.asyncio
async def test_call_data_encodes_exact_input_single():
    rpc = FakeRpc([_quoter_result(1)])
    client = _client(rpc)

    await client.quote(USDC, WETH, 1_000_000, 3000)

    to, data = rpc.calls[0]
    assert to == '0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a'
    assert data.startswith('0xc6a5026a')
    (params,) = decode(['(address,address,uint256,uint24,uint160)'], bytes.fromhex(data[10:]))
    assert params[0].lower() == USDC.lower()
    assert params[1].lower() == WETH.lower()
    assert params[2:] == (1_000_000, 3000, 0)


@pytest.mark.asyncio
async def test_revert_is_not_retried():
    rpc = FakeRpc([RpcRevertError("execution reverted"), _quoter_result(1)])
    client = _client(rpc)

    with pytest.raises(QuoteUnavailable) as excinfo:
        await client.quote(USDC, WETH, 1_000_000, 100)

    assert excinfo.value.reason == NO_LIQUIDITY
    assert len(rpc.calls) == 1


@pytest.mark.asyncio
async def test_transport_failure_is_retried_exactly_once():
    rpc = FakeRpc([RpcTransportError("429"), _quoter_result(777)])
    client = _client(rpc)

    result = await client.quote(USDC, WETH, 1_000_000, 500)

    assert result.amount_out == 777
    assert len(rpc.calls) == 2


@pytest.mark.asyncio
async def test_second_transport_failure_gives_up():
    rpc = FakeRpc([RpcTransportError("429"), RpcTransportError("429"), _quoter_result(1)])
    client = _client(rpc)

    with pytest.raises(QuoteUnavailable) as excinfo:
        await client.quote(USDC, WETH, 1_000_000, 500)

    assert excinfo.value.reason == TRANSPORT
    assert len(rpc.calls) == 2


@pytest.mark.asyncio
async def test_stuck_call_times_out_and_counts_as_transport():
    rpc = FakeRpc(['hang', 'hang'])
    client = _client(rpc, timeout=0.01)

    with pytest.raises(QuoteUnavailable) as excinfo:
        await client.quote(USDC, WETH, 1_000_000, 10000)

    assert excinfo.value.reason == TRANSPORT
    assert len(rpc.calls) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ['0x', _quoter_result(0)])
async def test_empty_or_zero_result_means_no_liquidity(raw):
    client = _client(FakeRpc([raw]))

    with pytest.raises(QuoteUnavailable) as excinfo:
        await client.quote(USDC, WETH, 1_000_000, 500)

    assert excinfo.value.reason == NO_LIQUIDITY


@pytest.mark.asyncio
async def test_non_positive_amount_is_rejected():
    client = _client(FakeRpc([]))

    with pytest.raises(ValueError):
        await client.quote(USDC, WETH, 0, 500)
