"""Route discovery and ranking across Uniswap V3 fee tiers."""

from .errors import InputError, InvalidAmount, NoLiquidity, RoutingError, UnknownToken, UnsupportedPair

__all__ = [
    "RoutingError",
    "InputError",
    "InvalidAmount",
    "NoLiquidity",
    "UnknownToken",
    "UnsupportedPair",
]
