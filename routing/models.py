#!/usr/bin/env python3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class Token:
    """A registered ERC-20 token (or the native asset) on Base."""
    symbol: str
    name: str
    address: str
    decimals: int
    is_native: bool = False


@dataclass(frozen=True)
class TokenPair:
    """An ordered, analyzable trading pair."""
    id: str
    from_token: Token
    to_token: Token
    label: str


@dataclass(frozen=True)
class TierQuote:
    """Raw simulated swap result for one fee tier."""
    fee_tier: int
    amount_out: int
    gas_estimate: int
    sqrt_price_x96_after: int = 0
    ticks_crossed: int = 0


@dataclass(frozen=True)
class RouteQuote:
    """One ranked execution route (a single fee-tier pool)."""
    fee_tier: int
    fee_label: str
    amount_out: int
    amount_out_formatted: str
    gas_estimate: int
    gas_cost_usd: float
    price_impact_pct: float
    price_impact_reliable: bool
    route: str
    is_best: bool = False


@dataclass(frozen=True)
class AnalysisResult:
    """Ranked routes for one analyze request, best first."""
    pair: TokenPair
    amount_in: str
    amount_in_base_units: int
    routes: Tuple[RouteQuote, ...]
    reference_price_usd: float
    gas_price_wei: int
    source: str
    timestamp: datetime
    best: Optional[RouteQuote] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'best', self.routes[0] if self.routes else None)

    @property
    def token_in(self) -> Token:
        return self.pair.from_token

    @property
    def token_out(self) -> Token:
        return self.pair.to_token
