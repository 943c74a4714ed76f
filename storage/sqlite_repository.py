"""SQLite-backed persistence layer for executed trades."""
from __future__ import annotations

import asyncio
import json
import secrets
import sqlite3
import threading
import time
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from constants import DEFAULT_DB_PATH
from storage.models import TradeRecord

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

_TRADE_COLUMNS = (
    "trade_id",
    "timestamp",
    "pair_from",
    "pair_to",
    "amount_in",
    "amount_out",
    "type",
    "route",
    "effective_rate",
    "gas_cost",
    "gas_used",
    "execution_quality",
    "quality_score",
    "predicted_output",
    "price_impact",
    "transaction_hash",
    "wallet_address",
    "network",
    "block_number",
    "status",
    "routes_analyzed",
)


class DuplicateTradeId(Exception):
    def __init__(self, trade_id: str) -> None:
        super().__init__(f"Trade {trade_id} already exists")
        self.trade_id = trade_id


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_trade_id() -> str:
    """Returns ``TRD-<base36 ms timestamp>-<random suffix>``, upper-cased."""
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"TRD-{_to_base36(millis)}-{suffix}".upper()


class SQLiteRepository:
    """Provides async-friendly helpers for persisting executed trades."""

    def __init__(self, db_path: Path | str = Path(DEFAULT_DB_PATH)) -> None:
        self.db_path = Path(db_path)
        if self.db_path != Path(":memory:"):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._connection = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
        )
        self._connection.row_factory = sqlite3.Row
        self._configure()
        self._create_schema()

    def _configure(self) -> None:
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute("PRAGMA journal_mode=WAL;")
            except sqlite3.DatabaseError:
                pass
            cursor.close()

    def _create_schema(self) -> None:
        statements = [
            """
            CREATE TABLE IF NOT EXISTS trades (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                trade_id TEXT NOT NULL UNIQUE,
                timestamp TEXT NOT NULL,
                pair_from TEXT NOT NULL,
                pair_to TEXT NOT NULL,
                amount_in TEXT NOT NULL,
                amount_out TEXT NOT NULL,
                type TEXT NOT NULL,
                route TEXT NOT NULL,
                effective_rate TEXT NOT NULL,
                gas_cost TEXT NOT NULL,
                gas_used TEXT NOT NULL,
                execution_quality TEXT NOT NULL,
                quality_score TEXT NOT NULL,
                predicted_output TEXT NOT NULL,
                price_impact TEXT NOT NULL,
                transaction_hash TEXT NOT NULL,
                wallet_address TEXT NOT NULL,
                network TEXT NOT NULL DEFAULT 'Base L2',
                block_number TEXT,
                status TEXT NOT NULL DEFAULT 'Completed',
                routes_analyzed TEXT
            );
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_trades_wallet
                ON trades(wallet_address COLLATE NOCASE);
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_trades_timestamp
                ON trades(timestamp);
            """,
        ]

        with self._lock:
            cursor = self._connection.cursor()
            for statement in statements:
                cursor.execute(statement)
            self._connection.commit()
            cursor.close()

    def close(self) -> None:
        with self._lock:
            self._connection.close()

    async def create_trade(self, record: TradeRecord) -> TradeRecord:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._create_trade_sync, record)

    def _create_trade_sync(self, record: TradeRecord) -> TradeRecord:
        timestamp = record.timestamp or datetime.now(timezone.utc)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        timestamp = timestamp.astimezone(timezone.utc)
        values = (
            record.trade_id,
            timestamp.strftime(ISO_FORMAT),
            record.pair_from,
            record.pair_to,
            record.amount_in,
            record.amount_out,
            record.type,
            record.route,
            record.effective_rate,
            record.gas_cost,
            record.gas_used,
            record.execution_quality,
            record.quality_score,
            record.predicted_output,
            record.price_impact,
            record.transaction_hash,
            record.wallet_address,
            record.network,
            record.block_number,
            record.status,
            json.dumps(record.routes_analyzed) if record.routes_analyzed is not None else None,
        )
        placeholders = ", ".join("?" for _ in _TRADE_COLUMNS)
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute(
                    f"INSERT INTO trades ({', '.join(_TRADE_COLUMNS)}) VALUES ({placeholders})",
                    values,
                )
                self._connection.commit()
                row_id = cursor.lastrowid
            except sqlite3.IntegrityError as exc:
                self._connection.rollback()
                if "UNIQUE constraint failed: trades.trade_id" not in str(exc):
                    raise
                raise DuplicateTradeId(record.trade_id) from exc
            finally:
                cursor.close()
        return replace(record, id=row_id, timestamp=timestamp)

    async def fetch_trade(self, trade_id: str) -> Optional[TradeRecord]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_trade_sync, trade_id)

    def _fetch_trade_sync(self, trade_id: str) -> Optional[TradeRecord]:
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute("SELECT * FROM trades WHERE trade_id = ?", (trade_id,))
            row = cursor.fetchone()
            cursor.close()
        if row is None:
            return None
        return self._row_to_record(row)

    async def fetch_trades_by_wallet(self, wallet_address: str) -> list[TradeRecord]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_trades_by_wallet_sync, wallet_address)

    def _fetch_trades_by_wallet_sync(self, wallet_address: str) -> list[TradeRecord]:
        return self._select(
            """
            SELECT * FROM trades
            WHERE wallet_address = ? COLLATE NOCASE
            ORDER BY timestamp DESC, id DESC
            """,
            (wallet_address,),
        )

    async def fetch_trades_by_ids(self, trade_ids: Iterable[str]) -> list[TradeRecord]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_trades_by_ids_sync, list(trade_ids))

    def _fetch_trades_by_ids_sync(self, trade_ids: list[str]) -> list[TradeRecord]:
        unique_ids = sorted({trade_id for trade_id in trade_ids if trade_id})
        if not unique_ids:
            return []
        placeholders = ", ".join("?" for _ in unique_ids)
        return self._select(
            f"""
            SELECT * FROM trades
            WHERE trade_id IN ({placeholders})
            ORDER BY timestamp DESC, id DESC
            """,
            tuple(unique_ids),
        )

    async def fetch_all_trades(self, limit: Optional[int] = None) -> list[TradeRecord]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_all_trades_sync, limit)

    def _fetch_all_trades_sync(self, limit: Optional[int]) -> list[TradeRecord]:
        # SQLite treats a negative LIMIT as unbounded.
        return self._select(
            """
            SELECT * FROM trades
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
            """,
            (limit if limit is not None else -1,),
        )

    def _select(self, query: str, params: tuple) -> list[TradeRecord]:
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()
            cursor.close()
        return [self._row_to_record(row) for row in rows]

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> TradeRecord:
        routes_analyzed = row["routes_analyzed"]
        return TradeRecord(
            id=row["id"],
            trade_id=row["trade_id"],
            timestamp=datetime.strptime(row["timestamp"], ISO_FORMAT).replace(tzinfo=timezone.utc),
            pair_from=row["pair_from"],
            pair_to=row["pair_to"],
            amount_in=row["amount_in"],
            amount_out=row["amount_out"],
            type=row["type"],
            route=row["route"],
            effective_rate=row["effective_rate"],
            gas_cost=row["gas_cost"],
            gas_used=row["gas_used"],
            execution_quality=row["execution_quality"],
            quality_score=row["quality_score"],
            predicted_output=row["predicted_output"],
            price_impact=row["price_impact"],
            transaction_hash=row["transaction_hash"],
            wallet_address=row["wallet_address"],
            network=row["network"],
            block_number=row["block_number"],
            status=row["status"],
            routes_analyzed=json.loads(routes_analyzed) if routes_analyzed else None,
        )
