"""Static token registry and supported pairs for Base L2."""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Dict, Tuple

from constants import NATIVE_TOKEN_ADDRESS
from routing.errors import InvalidAmount, UnknownToken, UnsupportedPair
from routing.models import Token, TokenPair

_TOKEN_LIST = (
    Token('ETH', 'Ether', NATIVE_TOKEN_ADDRESS, 18, is_native=True),
    Token('WETH', 'Wrapped Ether', '0x4200000000000000000000000000000000000006', 18),
    Token('USDC', 'USD Coin', '0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913', 6),
    Token('USDbC', 'USD Base Coin (Bridged)', '0xd9aAEc86B65D86f6A7B5B1b0c42FFA531710b6CA', 6),
    Token('DAI', 'Dai Stablecoin', '0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb', 18),
    Token('cbETH', 'Coinbase Wrapped Staked ETH', '0x2Ae3F1Ec7F1F5012CFEab0185bfc7aa3cf0DEc22', 18),
    Token('LINK', 'Chainlink', '0x88Fb150BDc53A65fe94Dea0c9BA0a6dAf8C6e196', 18),
    Token('AAVE', 'Aave', '0x63706e401c06ac8513145b7687a14804d17f814b', 18),
)

# Keyed by upper-cased symbol so lookups are case-insensitive
TOKENS: Dict[str, Token] = {token.symbol.upper(): token for token in _TOKEN_LIST}

WRAPPED_NATIVE = TOKENS['WETH']


def _pair(pair_id: str, from_symbol: str, to_symbol: str) -> TokenPair:
    from_token = TOKENS[from_symbol.upper()]
    to_token = TOKENS[to_symbol.upper()]
    return TokenPair(
        id=pair_id,
        from_token=from_token,
        to_token=to_token,
        label=f"{from_token.symbol} -> {to_token.symbol}",
    )


TOKEN_PAIRS: Tuple[TokenPair, ...] = (
    # Stablecoin to ETH
    _pair('usdc-weth', 'USDC', 'WETH'),
    _pair('usdc-eth', 'USDC', 'ETH'),
    _pair('usdc-cbeth', 'USDC', 'cbETH'),
    _pair('dai-weth', 'DAI', 'WETH'),
    _pair('usdbc-weth', 'USDbC', 'WETH'),
    # ETH to stablecoin
    _pair('weth-usdc', 'WETH', 'USDC'),
    _pair('eth-usdc', 'ETH', 'USDC'),
    # DeFi tokens
    _pair('usdc-link', 'USDC', 'LINK'),
    _pair('usdc-aave', 'USDC', 'AAVE'),
    _pair('weth-link', 'WETH', 'LINK'),
    _pair('weth-aave', 'WETH', 'AAVE'),
)


def lookup(symbol: str) -> Token:
    token = TOKENS.get((symbol or '').strip().upper())
    if token is None:
        raise UnknownToken(symbol)
    return token


def list_tokens() -> Tuple[Token, ...]:
    return _TOKEN_LIST


def list_pairs() -> Tuple[TokenPair, ...]:
    return TOKEN_PAIRS


def get_pair(from_symbol: str, to_symbol: str) -> TokenPair:
    """Resolves a listed pair, raising UnknownToken before UnsupportedPair."""
    from_token = lookup(from_symbol)
    to_token = lookup(to_symbol)
    if from_token == to_token:
        raise UnsupportedPair(from_token.symbol, to_token.symbol)
    for pair in TOKEN_PAIRS:
        if pair.from_token == from_token and pair.to_token == to_token:
            return pair
    raise UnsupportedPair(from_token.symbol, to_token.symbol)


def quote_address(token: Token) -> str:
    """Quoting contracts only understand wrapped assets."""
    if token.is_native:
        return WRAPPED_NATIVE.address
    return token.address


def to_base_units(amount: object, decimals: int) -> int:
    """Converts a human amount to integer base units, truncating extra precision."""
    text = str(amount).strip()
    if "_" in text:
        raise InvalidAmount(amount, "not a number")
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        raise InvalidAmount(amount, "not a number") from None
    if not value.is_finite():
        raise InvalidAmount(amount, "not finite")
    if value <= 0:
        raise InvalidAmount(amount, "must be greater than zero")
    try:
        with localcontext() as ctx:
            ctx.prec = 80
            base_units = int(value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))
    except ArithmeticError:
        raise InvalidAmount(amount, "out of range") from None
    if base_units <= 0:
        raise InvalidAmount(amount, f"below the smallest unit for {decimals} decimals")
    if base_units >= 2 ** 256:
        raise InvalidAmount(amount, "out of range")
    return base_units


def format_units(value: int, decimals: int) -> str:
    """Renders base units as a plain decimal string without trailing zeros."""
    with localcontext() as ctx:
        ctx.prec = 80
        text = format(Decimal(value).scaleb(-decimals), "f")
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text or '0'
