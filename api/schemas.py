"""Request and response models for the HTTP API.

Fields are snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from constants import DEFAULT_TRADE_STATUS, NETWORK_NAME
from routing.models import AnalysisResult, RouteQuote, Token, TokenPair
from storage.models import TradeRecord


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorOut(ApiModel):
    error: str
    code: Optional[str] = None
    recommendation: Optional[str] = None


class HealthOut(ApiModel):
    status: str
    quote_source: str
    network: str
    chain_id: int


class TokenOut(ApiModel):
    symbol: str
    name: str
    address: str
    decimals: int
    is_native: bool

    @classmethod
    def from_token(cls, token: Token) -> "TokenOut":
        return cls(
            symbol=token.symbol,
            name=token.name,
            address=token.address,
            decimals=token.decimals,
            is_native=token.is_native,
        )


class PairOut(ApiModel):
    id: str
    label: str
    from_symbol: str = Field(alias='from')
    to_symbol: str = Field(alias='to')

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "PairOut":
        return cls(
            id=pair.id,
            label=pair.label,
            from_symbol=pair.from_token.symbol,
            to_symbol=pair.to_token.symbol,
        )


class TokensOut(ApiModel):
    tokens: List[TokenOut]
    pairs: List[PairOut]


class AnalyzeRequest(ApiModel):
    pair_from: str = Field(min_length=1)
    pair_to: str = Field(min_length=1)
    amount_in: Union[StrictStr, StrictInt, StrictFloat]


class RouteOut(ApiModel):
    fee_tier: int
    fee_label: str
    amount_out: str
    amount_out_formatted: str
    gas_estimate: str
    gas_cost_usd: float
    price_impact_pct: float
    price_impact_reliable: bool
    route: str
    is_best: bool

    @classmethod
    def from_route(cls, route: RouteQuote) -> "RouteOut":
        # base-unit integers travel as strings; they routinely exceed 2**53
        return cls(
            fee_tier=route.fee_tier,
            fee_label=route.fee_label,
            amount_out=str(route.amount_out),
            amount_out_formatted=route.amount_out_formatted,
            gas_estimate=str(route.gas_estimate),
            gas_cost_usd=route.gas_cost_usd,
            price_impact_pct=route.price_impact_pct,
            price_impact_reliable=route.price_impact_reliable,
            route=route.route,
            is_best=route.is_best,
        )


class AnalysisOut(ApiModel):
    pair: PairOut
    token_in: TokenOut
    token_out: TokenOut
    amount_in: str
    amount_in_base_units: str
    routes: List[RouteOut]
    best_route: Optional[RouteOut]
    reference_price_usd: float
    gas_price_wei: str
    source: str
    timestamp: datetime

    @classmethod
    def from_result(cls, result: AnalysisResult) -> "AnalysisOut":
        routes = [RouteOut.from_route(route) for route in result.routes]
        return cls(
            pair=PairOut.from_pair(result.pair),
            token_in=TokenOut.from_token(result.token_in),
            token_out=TokenOut.from_token(result.token_out),
            amount_in=result.amount_in,
            amount_in_base_units=str(result.amount_in_base_units),
            routes=routes,
            best_route=routes[0] if routes else None,
            reference_price_usd=result.reference_price_usd,
            gas_price_wei=str(result.gas_price_wei),
            source=result.source,
            timestamp=result.timestamp,
        )


class TradeCreate(ApiModel):
    """Payload for recording an executed trade.

    ``trade_id`` is generated when absent. ``execution_quality`` and
    ``quality_score`` are derived from predicted and actual output when absent.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        str_strip_whitespace=True,
    )

    trade_id: Optional[str] = Field(default=None, min_length=1)
    pair_from: str = Field(min_length=1)
    pair_to: str = Field(min_length=1)
    amount_in: str = Field(min_length=1)
    amount_out: str = Field(min_length=1)
    type: str = Field(min_length=1)
    route: str = Field(min_length=1)
    effective_rate: str = Field(min_length=1)
    gas_cost: str = Field(min_length=1)
    gas_used: str = Field(min_length=1)
    execution_quality: Optional[str] = None
    quality_score: Optional[str] = None
    predicted_output: str = Field(min_length=1)
    price_impact: str = Field(min_length=1)
    transaction_hash: str = Field(min_length=1)
    wallet_address: str = Field(min_length=1)
    network: str = NETWORK_NAME
    block_number: Optional[str] = None
    status: str = DEFAULT_TRADE_STATUS
    routes_analyzed: Optional[List[Any]] = None


class TradeOut(ApiModel):
    id: int
    trade_id: str
    timestamp: datetime
    pair_from: str
    pair_to: str
    amount_in: str
    amount_out: str
    type: str
    route: str
    effective_rate: str
    gas_cost: str
    gas_used: str
    execution_quality: str
    quality_score: str
    predicted_output: str
    price_impact: str
    transaction_hash: str
    wallet_address: str
    network: str
    block_number: Optional[str]
    status: str
    routes_analyzed: Optional[List[Any]]

    @classmethod
    def from_record(cls, record: TradeRecord) -> "TradeOut":
        return cls(
            id=record.id,
            trade_id=record.trade_id,
            timestamp=record.timestamp,
            pair_from=record.pair_from,
            pair_to=record.pair_to,
            amount_in=record.amount_in,
            amount_out=record.amount_out,
            type=record.type,
            route=record.route,
            effective_rate=record.effective_rate,
            gas_cost=record.gas_cost,
            gas_used=record.gas_used,
            execution_quality=record.execution_quality,
            quality_score=record.quality_score,
            predicted_output=record.predicted_output,
            price_impact=record.price_impact,
            transaction_hash=record.transaction_hash,
            wallet_address=record.wallet_address,
            network=record.network,
            block_number=record.block_number,
            status=record.status,
            routes_analyzed=record.routes_analyzed,
        )
