import pytest

from routing.tokens import TOKENS
from services.quote_providers import (
    AggregatorQuoteProvider,
    OnChainQuoteProvider,
    SimulatedQuoteProvider,
)
from services.quoter_client import NO_LIQUIDITY, TRANSPORT, QuoterResult, QuoteUnavailable
from services.uniswap_api_client import UniswapApiClient


class FakeQuoteClient:
    def __init__(self):
        self.calls = []

    async def quote(self, token_in, token_out, amount_in, fee_tier):
        self.calls.append((token_in, token_out, amount_in, fee_tier))
        return QuoterResult(amount_out=5, sqrt_price_x96_after=7, ticks_crossed=1, gas_estimate=100_000)


class FakeApiClient:
    def __init__(self, payload):
        self._payload = payload
        self.calls = 0

    async def get_quote(self, token_in, token_out, amount_in):
        self.calls += 1
        return self._payload


def _route_payload(fee, amount='1000', gas='150000', hops=1):
    pools = [{'type': 'v3-pool', 'fee': str(fee)} for _ in range(hops)]
    return {'quote': amount, 'gasUseEstimate': gas, 'route': [pools]}


@pytest.mark.asyncio
async def test_onchain_provider_quotes_native_token_as_wrapped():
    client = FakeQuoteClient()
    provider = OnChainQuoteProvider(client)

    quote = await provider.quote(TOKENS['ETH'], TOKENS['USDC'], 10 ** 18, 500)

    assert client.calls[0][0] == TOKENS['WETH'].address
    assert quote.fee_tier == 500
    assert quote.amount_out == 5
    assert quote.ticks_crossed == 1


@pytest.mark.asyncio
async def test_aggregator_only_answers_for_the_tier_its_route_uses():
    api = FakeApiClient(_route_payload(3000))
    provider = AggregatorQuoteProvider(api)

    quote = await provider.quote(TOKENS['USDC'], TOKENS['WETH'], 1_000_000, 3000)
    assert quote.amount_out == 1000
    assert quote.gas_estimate == 150_000

    with pytest.raises(QuoteUnavailable) as excinfo:
        await provider.quote(TOKENS['USDC'], TOKENS['WETH'], 1_000_000, 500)
    assert excinfo.value.reason == NO_LIQUIDITY

    # both tiers share one API call
    assert api.calls == 1


@pytest.mark.asyncio
async def test_aggregator_multi_hop_route_maps_to_no_tier():
    provider = AggregatorQuoteProvider(FakeApiClient(_route_payload(500, hops=2)))

    with pytest.raises(QuoteUnavailable):
        await provider.quote(TOKENS['USDC'], TOKENS['WETH'], 1_000_000, 500)


@pytest.mark.asyncio
async def test_aggregator_api_failure_is_transport():
    provider = AggregatorQuoteProvider(FakeApiClient(None))

    with pytest.raises(QuoteUnavailable) as excinfo:
        await provider.quote(TOKENS['USDC'], TOKENS['WETH'], 1_000_000, 500)
    assert excinfo.value.reason == TRANSPORT


@pytest.mark.asyncio
async def test_simulated_provider_is_deterministic_and_fee_ordered():
    provider = SimulatedQuoteProvider()
    usdc, weth = TOKENS['USDC'], TOKENS['WETH']

    quotes = [await provider.quote(usdc, weth, 1_000 * 10 ** 6, fee) for fee in (100, 500, 3000, 10000)]
    again = await provider.quote(usdc, weth, 1_000 * 10 ** 6, 500)

    outputs = [quote.amount_out for quote in quotes]
    assert outputs == sorted(outputs, reverse=True)
    assert again == quotes[1]
    assert quotes[0].gas_estimate == 110_000


@pytest.mark.asyncio
async def test_simulated_provider_without_price_has_no_pool():
    provider = SimulatedQuoteProvider(usd_prices={'USDC': 1.0})

    with pytest.raises(QuoteUnavailable):
        await provider.quote(TOKENS['USDC'], TOKENS['LINK'], 1_000_000, 500)


class FakeResponse:
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


class FakeSession:
    def __init__(self, payload):
        self._payload = payload
        self.requests = []

    def post(self, url, json, headers=None, timeout=None):
        self.requests.append((url, json, headers))
        return FakeResponse(self._payload)


@pytest.mark.asyncio
async def test_uniswap_api_client_sends_key_and_unwraps_quote():
    session = FakeSession({'routing': 'CLASSIC', 'quote': _route_payload(500)})
    client = UniswapApiClient(session, 'secret', base_url='http://mock-api/')

    payload = await client.get_quote(TOKENS['USDC'].address, TOKENS['WETH'].address, 1_000_000)

    url, body, headers = session.requests[0]
    assert url == 'http://mock-api/quote'
    assert headers['x-api-key'] == 'secret'
    assert body['amount'] == '1000000'
    assert body['tokenInChainId'] == 8453
    assert payload['quote'] == '1000'
