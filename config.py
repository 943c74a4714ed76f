#!/usr/bin/env python3
import os
import argparse
from typing import NamedTuple, Optional, Sequence
import constants

class AppConfig(NamedTuple):
    """Typed configuration object."""
    host: str
    port: int
    rpc_url: str
    quote_source: str
    uniswap_api_key: str | None
    coingecko_api_key: str | None
    graph_api_key: str | None
    db_path: str
    fallback_gas_price_wei: int
    fallback_eth_price_usd: float
    quote_timeout: float
    quote_retry_delay: float
    max_concurrent_rpc: int
    rpc_dispatch_interval: float
    log_level: str
    analyze: list[str] | None
    show_trades: bool
    trades_limit: int
    trades_wallet: str | None


def load_config(argv: Optional[Sequence[str]] = None) -> AppConfig:
    """
    Parses command-line arguments and loads environment variables to create a configuration object.
    """
    parser = argparse.ArgumentParser(
        description="Rank Uniswap V3 fee-tier routes on Base L2 and record executed trades.",
        epilog="Example: ./main.py --analyze USDC WETH 1000 --quote-source simulated"
    )
    # --- Server Arguments ---
    parser.add_argument('--host', type=str, default='127.0.0.1', help='Interface for the HTTP API (default: 127.0.0.1).')
    parser.add_argument('--port', type=int, default=5000, help='Port for the HTTP API (default: 5000).')
    parser.add_argument('--rpc-url', type=str, help=f'JSON-RPC endpoint (default: ${constants.RPC_URL_ENV_VAR} or {constants.DEFAULT_RPC_URL}).')
    parser.add_argument('--quote-source', choices=constants.QUOTE_SOURCES, help='Where route quotes come from (default: onchain).')
    parser.add_argument('--db-path', type=str, help=f'SQLite file for trade records (default: {constants.DEFAULT_DB_PATH}).')
    parser.add_argument('--log-level', type=str, help='Python logging level (default: INFO).')

    # --- Quoting Arguments ---
    parser.add_argument('--fallback-gas-price-wei', type=int, default=constants.DEFAULT_FALLBACK_GAS_PRICE_WEI, help=f'Gas price used when the RPC call fails (default: {constants.DEFAULT_FALLBACK_GAS_PRICE_WEI}).')
    parser.add_argument('--fallback-eth-price', type=float, default=constants.DEFAULT_FALLBACK_ETH_PRICE_USD, help=f'ETH/USD price used when every price feed fails (default: {constants.DEFAULT_FALLBACK_ETH_PRICE_USD}).')
    parser.add_argument('--quote-timeout', type=float, default=constants.DEFAULT_QUOTE_TIMEOUT, help=f'Seconds before a single quote attempt is abandoned (default: {constants.DEFAULT_QUOTE_TIMEOUT}).')
    parser.add_argument('--quote-retry-delay', type=float, default=constants.DEFAULT_QUOTE_RETRY_DELAY, help=f'Seconds to wait before retrying a failed RPC quote (default: {constants.DEFAULT_QUOTE_RETRY_DELAY}).')
    parser.add_argument('--max-concurrent-rpc', type=int, default=constants.DEFAULT_MAX_CONCURRENT_RPC, help=f'Max in-flight JSON-RPC requests (default: {constants.DEFAULT_MAX_CONCURRENT_RPC}).')
    parser.add_argument('--rpc-dispatch-interval', type=float, default=constants.DEFAULT_RPC_DISPATCH_INTERVAL, help=f'Minimum seconds between JSON-RPC dispatches (default: {constants.DEFAULT_RPC_DISPATCH_INTERVAL}).')

    # --- CLI Modes ---
    parser.add_argument('--analyze', nargs=3, metavar=('FROM', 'TO', 'AMOUNT'), help='Rank routes once, print them and exit.')
    parser.add_argument('--show-trades', action='store_true', help='Display recorded trades and exit.')
    parser.add_argument('--trades-limit', type=int, default=20, help='Number of trades to display (default: 20).')
    parser.add_argument('--trades-wallet', type=str, help='Filter displayed trades by wallet address.')

    args = parser.parse_args(argv)

    # Load from environment
    uniswap_api_key = os.environ.get(constants.UNISWAP_API_KEY_ENV_VAR)
    coingecko_api_key = os.environ.get(constants.COINGECKO_API_KEY_ENV_VAR)
    graph_api_key = os.environ.get(constants.GRAPH_API_KEY_ENV_VAR)
    rpc_url = args.rpc_url or os.environ.get(constants.RPC_URL_ENV_VAR) or constants.DEFAULT_RPC_URL
    db_path = args.db_path or os.environ.get(constants.DB_PATH_ENV_VAR) or constants.DEFAULT_DB_PATH
    log_level = (args.log_level or os.environ.get(constants.LOG_LEVEL_ENV_VAR) or 'INFO').upper()

    quote_source = args.quote_source or os.environ.get(constants.QUOTE_SOURCE_ENV_VAR) or constants.QUOTE_SOURCE_ONCHAIN
    quote_source = quote_source.lower()
    if quote_source not in constants.QUOTE_SOURCES:
        print(f"{constants.C_RED}Unknown quote source '{quote_source}'. Choose one of: {', '.join(constants.QUOTE_SOURCES)}.{constants.C_RESET}")
        exit(1)

    if quote_source == constants.QUOTE_SOURCE_AGGREGATOR and not uniswap_api_key:
        print(f"{constants.C_RED}The aggregator quote source requires {constants.UNISWAP_API_KEY_ENV_VAR} to be set.{constants.C_RESET}")
        exit(1)

    if args.max_concurrent_rpc < 1:
        parser.error('--max-concurrent-rpc must be at least 1.')

    return AppConfig(
        host=args.host,
        port=args.port,
        rpc_url=rpc_url,
        quote_source=quote_source,
        uniswap_api_key=uniswap_api_key,
        coingecko_api_key=coingecko_api_key,
        graph_api_key=graph_api_key,
        db_path=db_path,
        fallback_gas_price_wei=args.fallback_gas_price_wei,
        fallback_eth_price_usd=args.fallback_eth_price,
        quote_timeout=args.quote_timeout,
        quote_retry_delay=args.quote_retry_delay,
        max_concurrent_rpc=args.max_concurrent_rpc,
        rpc_dispatch_interval=args.rpc_dispatch_interval,
        log_level=log_level,
        analyze=args.analyze,
        show_trades=args.show_trades,
        trades_limit=args.trades_limit,
        trades_wallet=args.trades_wallet,
    )
