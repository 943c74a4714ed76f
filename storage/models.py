"""Dataclasses representing stored trade records."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from constants import DEFAULT_TRADE_STATUS, NETWORK_NAME


@dataclass(slots=True)
class TradeRecord:
    """An executed swap. Amounts are decimal strings as reported by the wallet flow."""

    trade_id: str
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
    network: str = NETWORK_NAME
    block_number: Optional[str] = None
    status: str = DEFAULT_TRADE_STATUS
    routes_analyzed: Optional[list] = None
    id: Optional[int] = None
    timestamp: Optional[datetime] = None
