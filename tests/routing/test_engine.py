import asyncio

import pytest
from eth_abi import decode, encode

from routing.engine import RouteRankingEngine, estimate_price_impact, gas_cost_usd
from routing.errors import InvalidAmount, NoLiquidity, UnknownToken, UnsupportedPair
from routing.models import TierQuote
from services.price_oracle import PriceOracle
from services.quote_providers import OnChainQuoteProvider
from services.quoter_client import NO_LIQUIDITY, TRANSPORT, OnChainQuoteClient, QuoteUnavailable
from services.rpc_client import JsonRpcClient


class FakeProvider:
    name = 'fake'

    def __init__(self, outcomes):
        # fee tier -> amount_out, TierQuote, or an exception to raise
        self._outcomes = outcomes
        self.calls = []

    async def quote(self, token_in, token_out, amount_in, fee_tier):
        self.calls.append((token_in.symbol, token_out.symbol, amount_in, fee_tier))
        await asyncio.sleep(0)
        outcome = self._outcomes[fee_tier]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, TierQuote):
            return outcome
        return TierQuote(fee_tier=fee_tier, amount_out=outcome, gas_estimate=120_000, ticks_crossed=1)


class FakeOracle:
    def __init__(self, gas_price=1_000_000, eth_price=3500.0):
        self.gas_price = gas_price
        self.eth_price = eth_price
        self.calls = 0

    async def current_gas_price(self):
        self.calls += 1
        return self.gas_price

    async def reference_price_usd(self):
        self.calls += 1
        return self.eth_price


class FailingRpc:
    async def gas_price(self):
        raise RuntimeError("rpc down")


class FailingPriceClient:
    async def get_eth_price_in_usd(self):
        raise RuntimeError("feed down")


@pytest.mark.asyncio
async def test_analyze_ranks_by_output_and_skips_missing_pool():
    provider = FakeProvider({
        100: QuoteUnavailable(100, NO_LIQUIDITY),
        500: 542_000_000_000_000,
        3000: 541_000_000_000_000,
        10000: 538_000_000_000_000,
    })
    engine = RouteRankingEngine(provider, FakeOracle())

    result = await engine.analyze('USDC', 'WETH', '1')

    assert [route.fee_tier for route in result.routes] == [500, 3000, 10000]
    assert [route.is_best for route in result.routes] == [True, False, False]
    assert result.best.route == 'USDC -> [0.05%] -> WETH'
    assert result.best.amount_out_formatted == '0.000542'
    assert result.amount_in_base_units == 1_000_000
    assert result.source == 'fake'
    assert len(provider.calls) == 4


@pytest.mark.asyncio
async def test_usdc_to_weth_drops_zero_output_tier():
    provider = FakeProvider({
        100: 0,
        500: 542_000_000_000_000,
        3000: 541_000_000_000_000,
        10000: 538_000_000_000_000,
    })
    engine = RouteRankingEngine(provider, FakeOracle())

    result = await engine.analyze('USDC', 'WETH', '1000')

    assert [route.fee_tier for route in result.routes] == [500, 3000, 10000]
    assert [route.is_best for route in result.routes] == [True, False, False]
    assert result.best.amount_out == 542_000_000_000_000
    assert result.amount_in_base_units == 1_000_000_000
    assert sorted(call[3] for call in provider.calls) == [100, 500, 3000, 10000]

@pytest.mark.asyncio
async def test_equal_outputs_prefer_lower_fee_tier():
    provider = FakeProvider({100: 10_000, 500: 20_000, 3000: 20_000, 10000: 5_000})
    engine = RouteRankingEngine(provider, FakeOracle())

    result = await engine.analyze('WETH', 'USDC', '0.01')

    assert [route.fee_tier for route in result.routes] == [500, 3000, 100, 10000]
    assert sum(route.is_best for route in result.routes) == 1
    assert result.best.fee_tier == 500


@pytest.mark.asyncio
async def test_all_tiers_unavailable_raises_no_liquidity():
    provider = FakeProvider({
        100: QuoteUnavailable(100, NO_LIQUIDITY),
        500: QuoteUnavailable(500, TRANSPORT),
        3000: 0,
        10000: RuntimeError("boom"),
    })
    engine = RouteRankingEngine(provider, FakeOracle())

    with pytest.raises(NoLiquidity):
        await engine.analyze('USDC', 'AAVE', '25')


@pytest.mark.asyncio
@pytest.mark.parametrize("from_symbol, to_symbol, amount, error", [
    ('USDC', 'DOGE', '1', UnknownToken),
    ('LINK', 'AAVE', '1', UnsupportedPair),
    ('USDC', 'WETH', '0', InvalidAmount),
    ('USDC', 'WETH', '-5', InvalidAmount),
    ('USDC', 'WETH', 'abc', InvalidAmount),
])
async def test_input_errors_make_no_network_calls(from_symbol, to_symbol, amount, error):
    provider = FakeProvider({})
    oracle = FakeOracle()
    engine = RouteRankingEngine(provider, oracle)

    with pytest.raises(error):
        await engine.analyze(from_symbol, to_symbol, amount)

    assert provider.calls == []
    assert oracle.calls == 0


@pytest.mark.asyncio
async def test_oracle_failures_fall_back_and_still_return_routes():
    oracle = PriceOracle(
        FailingRpc(),
        FailingPriceClient(),
        fallback_gas_price_wei=1_000_000,
        fallback_eth_price_usd=3500.0,
    )
    provider = FakeProvider({100: 1_000, 500: 2_000, 3000: 3_000, 10000: 4_000})
    engine = RouteRankingEngine(provider, oracle)

    result = await engine.analyze('USDC', 'WETH', '100')

    assert result.gas_price_wei == 1_000_000
    assert result.reference_price_usd == 3500.0
    assert result.best.fee_tier == 10000
    assert result.best.gas_cost_usd == pytest.approx(120_000 * 1_000_000 / 1e18 * 3500.0)


@pytest.mark.asyncio
async def test_price_impact_reliability_follows_ticks_crossed():
    provider = FakeProvider({
        100: TierQuote(fee_tier=100, amount_out=900, gas_estimate=100_000, ticks_crossed=0),
        500: TierQuote(fee_tier=500, amount_out=1_000, gas_estimate=100_000, ticks_crossed=4),
        3000: QuoteUnavailable(3000, NO_LIQUIDITY),
        10000: QuoteUnavailable(10000, NO_LIQUIDITY),
    })
    engine = RouteRankingEngine(provider, FakeOracle())

    result = await engine.analyze('USDC', 'WETH', '1')

    by_tier = {route.fee_tier: route for route in result.routes}
    assert by_tier[100].price_impact_reliable is True
    assert by_tier[500].price_impact_reliable is False


def test_price_impact_never_improves_with_higher_fee():
    impacts = [estimate_price_impact(fee) for fee in (100, 500, 3000, 10000)]
    assert impacts == sorted(impacts, reverse=True)
    assert estimate_price_impact(500) == pytest.approx(-0.05)


def test_gas_cost_usd_conversion():
    assert gas_cost_usd(150_000, 2_000_000_000, 2000.0) == pytest.approx(0.6)


def test_rank_routes_handles_empty_set():
    assert RouteRankingEngine.rank_routes([]) == []


class QuoterNodeSession:
    """Answers QuoterV2 eth_calls by the fee tier encoded in the call data."""

    def __init__(self, outcomes):
        self._outcomes = outcomes
        self.calls_by_tier = {}

    def post(self, url, json, timeout):
        data = json['params'][0]['data']
        (params,) = decode(['(address,address,uint256,uint24,uint160)'], bytes.fromhex(data[10:]))
        fee_tier = params[3]
        self.calls_by_tier[fee_tier] = self.calls_by_tier.get(fee_tier, 0) + 1
        outcome = self._outcomes[fee_tier]
        if isinstance(outcome, dict):
            return NodeResponse({'jsonrpc': '2.0', 'id': json['id'], 'error': outcome})
        payload = encode(['uint256', 'uint160', 'uint32', 'uint256'], [outcome, 2 ** 96, 1, 120_000])
        return NodeResponse({'jsonrpc': '2.0', 'id': json['id'], 'result': '0x' + payload.hex()})


class NodeResponse:
    def __init__(self, payload):
        self._payload = payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        return None

    async def json(self):
        return self._payload


@pytest.mark.asyncio
async def test_onchain_path_skips_reverted_and_unreachable_tiers():
    session = QuoterNodeSession({
        100: {'code': 3, 'message': 'execution reverted'},
        500: {'code': -32005, 'message': 'request limit exceeded'},
        3000: 541_000_000_000_000,
        10000: 538_000_000_000_000,
    })
    rpc = JsonRpcClient(session, rpc_url='http://mock-rpc', timeout=5.0, max_concurrent=4)
    provider = OnChainQuoteProvider(OnChainQuoteClient(rpc, retry_delay=0))
    engine = RouteRankingEngine(provider, FakeOracle())

    result = await engine.analyze('USDC', 'WETH', '1000')

    assert [route.fee_tier for route in result.routes] == [3000, 10000]
    assert result.best.fee_tier == 3000
    assert result.best.amount_out_formatted == '0.000541'
    assert result.source == 'onchain'
    assert session.calls_by_tier == {100: 1, 500: 2, 3000: 1, 10000: 1}
