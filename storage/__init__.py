"""Storage package providing persistence for executed trades."""

from .models import TradeRecord
from .sqlite_repository import DuplicateTradeId, SQLiteRepository, generate_trade_id

__all__ = ["DuplicateTradeId", "SQLiteRepository", "TradeRecord", "generate_trade_id"]
