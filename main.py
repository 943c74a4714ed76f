#!/usr/bin/env python3
import asyncio
import logging
from datetime import datetime

import aiohttp
import uvicorn

import constants
from api.app import create_app
from config import AppConfig, load_config
from routing.engine import build_engine
from routing.errors import InputError, NoLiquidity
from routing.models import AnalysisResult
from storage import SQLiteRepository, TradeRecord


async def analyze_once(config: AppConfig) -> AnalysisResult:
    """Runs a single analysis with a short-lived HTTP session."""
    from_symbol, to_symbol, amount = config.analyze
    async with aiohttp.ClientSession() as session:
        engine = build_engine(config, session)
        return await engine.analyze(from_symbol, to_symbol, amount)


async def load_trades(config: AppConfig) -> list[TradeRecord]:
    repository = SQLiteRepository(config.db_path)
    try:
        if config.trades_wallet:
            records = await repository.fetch_trades_by_wallet(config.trades_wallet)
            return records[:config.trades_limit]
        return await repository.fetch_all_trades(limit=config.trades_limit)
    finally:
        repository.close()


def main() -> None:
    """The main synchronous entry point for the application."""
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if config.analyze:
        try:
            result = asyncio.run(analyze_once(config))
        except InputError as exc:
            print(f"{constants.C_RED}{exc}{constants.C_RESET}")
            exit(1)
        except NoLiquidity as exc:
            print(f"{constants.C_YELLOW}{exc}. No fee tier has a pool for this pair; use demo execution instead.{constants.C_RESET}")
            exit(1)
        _print_analysis(result)
        return

    if config.show_trades:
        records = asyncio.run(load_trades(config))
        _print_trades(records, config.trades_limit, config.trades_wallet)
        return

    print(f"Serving route analysis on http://{config.host}:{config.port} (quote source: {config.quote_source})")
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())


def _print_table(headers: list[str], rows: list[list[str]]) -> None:
    widths = [len(h) for h in headers]
    for row in rows:
        for idx, cell in enumerate(row):
            widths[idx] = max(widths[idx], len(cell))

    def _format_line(row: list[str]) -> str:
        return "  ".join(cell.ljust(widths[idx]) for idx, cell in enumerate(row))

    print(_format_line(headers))
    print("  ".join('-' * w for w in widths))
    for row in rows:
        print(_format_line(row))


def _print_analysis(result: AnalysisResult) -> None:
    heading = f"{result.amount_in} {result.token_in.symbol} -> {result.token_out.symbol} on {constants.NETWORK_NAME}"
    print(heading)
    print("=" * len(heading))
    print(f"Source: {result.source}  ETH ${result.reference_price_usd:,.2f}  Gas {result.gas_price_wei} wei")
    print()

    headers = ["", "Fee", "Amount Out", "Gas", "Gas $", "Impact %", "Route"]
    rows = []
    for route in result.routes:
        impact = f"{route.price_impact_pct:+.2f}"
        if not route.price_impact_reliable:
            impact += "*"
        rows.append([
            "*" if route.is_best else "",
            route.fee_label,
            route.amount_out_formatted,
            f"{route.gas_estimate:,}",
            f"{route.gas_cost_usd:.4f}",
            impact,
            route.route,
        ])
    _print_table(headers, rows)

    best = result.best
    print()
    print(f"{constants.C_GREEN}Best: {best.route} -> {best.amount_out_formatted} {result.token_out.symbol}{constants.C_RESET}")


def _print_trades(records: list[TradeRecord], limit: int, wallet: str | None) -> None:
    heading = f"Showing up to {limit} trades"
    if wallet:
        heading += f" (wallet={wallet})"
    print(heading)
    print("=" * len(heading))

    if not records:
        print("No trades found.")
        return

    def _format_row(record: TradeRecord) -> list[str]:
        timestamp: datetime = record.timestamp
        time_str = timestamp.strftime("%Y-%m-%d %H:%M:%S") if timestamp else "N/A"
        return [
            time_str,
            record.trade_id,
            f"{record.pair_from}/{record.pair_to}",
            record.amount_in,
            record.amount_out,
            record.route,
            f"{record.execution_quality} ({record.quality_score})",
            record.status,
        ]

    headers = ["Time (UTC)", "Trade", "Pair", "In", "Out", "Route", "Quality", "Status"]
    _print_table(headers, [_format_row(rec) for rec in records])


if __name__ == "__main__":
    main()
