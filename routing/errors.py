"""Errors raised while resolving and ranking routes."""
from __future__ import annotations


class RoutingError(Exception):
    """Base class for route analysis failures."""


class InputError(RoutingError):
    """The caller supplied something the engine cannot analyze."""


class UnknownToken(InputError):
    def __init__(self, symbol: str) -> None:
        super().__init__(f"Unknown token: {symbol}")
        self.symbol = symbol


class UnsupportedPair(InputError):
    def __init__(self, from_symbol: str, to_symbol: str) -> None:
        super().__init__(f"Unsupported trading pair: {from_symbol} -> {to_symbol}")
        self.from_symbol = from_symbol
        self.to_symbol = to_symbol


class InvalidAmount(InputError):
    def __init__(self, amount: object, reason: str = "amount must be a positive number") -> None:
        super().__init__(f"Invalid amount '{amount}': {reason}")
        self.amount = amount


class NoLiquidity(RoutingError):
    """No fee tier produced a usable quote for the pair."""

    def __init__(self, from_symbol: str, to_symbol: str) -> None:
        super().__init__(f"No liquidity route found for {from_symbol} -> {to_symbol}")
        self.from_symbol = from_symbol
        self.to_symbol = to_symbol
