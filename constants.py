#!/usr/bin/env python3
from typing import Dict

# --- ANSI Color Codes ---
C_GREEN = '\033[92m'
C_RED = '\033[91m'
C_YELLOW = '\033[93m'
C_RESET = '\033[0m'

# --- API Configuration ---
DEFAULT_RPC_URL = 'https://mainnet.base.org'
COINGECKO_API_BASE_URL = 'https://api.coingecko.com/api/v3'
GRAPH_API_BASE_URL = 'https://gateway.thegraph.com/api'
UNISWAP_API_BASE_URL = 'https://api.uniswap.org/v2'

# Uniswap V3 Base subgraph on The Graph's decentralized network
UNISWAP_V3_BASE_SUBGRAPH_ID = 'GqzP4Xaehti8KSfQmv3ZctFSjnSUYZ4En5NRsiTbvZpz'

# --- Environment Variable Names ---
RPC_URL_ENV_VAR = 'BASE_RPC_URL'
UNISWAP_API_KEY_ENV_VAR = 'UNISWAP_API_KEY'
COINGECKO_API_KEY_ENV_VAR = 'COINGECKO_API_KEY'
GRAPH_API_KEY_ENV_VAR = 'GRAPH_API_KEY'
QUOTE_SOURCE_ENV_VAR = 'QUOTE_SOURCE'
DB_PATH_ENV_VAR = 'TRADES_DB_PATH'
LOG_LEVEL_ENV_VAR = 'LOG_LEVEL'

# --- Chain Configuration ---
BASE_CHAIN_ID = 8453
NETWORK_NAME = 'Base L2'
NATIVE_TOKEN_ADDRESS = '0x0000000000000000000000000000000000000000'

# --- Uniswap V3 Contracts (Base) ---
V3_CONTRACTS: Dict[str, str] = {
    'QUOTER_V2': '0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a',
}

# Fee tiers in hundredths of a basis point: 0.01%, 0.05%, 0.3%, 1%
V3_FEE_TIERS = (100, 500, 3000, 10000)

FEE_TIER_LABELS: Dict[int, str] = {
    100: '0.01%',
    500: '0.05%',
    3000: '0.3%',
    10000: '1%',
}

# --- Quote Sources ---
QUOTE_SOURCE_ONCHAIN = 'onchain'
QUOTE_SOURCE_AGGREGATOR = 'aggregator'
QUOTE_SOURCE_SIMULATED = 'simulated'
QUOTE_SOURCES = (QUOTE_SOURCE_ONCHAIN, QUOTE_SOURCE_AGGREGATOR, QUOTE_SOURCE_SIMULATED)

# --- Oracle Fallbacks ---
# Base L2 gas typically sits around 0.001 gwei
DEFAULT_FALLBACK_GAS_PRICE_WEI = 1_000_000
DEFAULT_FALLBACK_ETH_PRICE_USD = 3500.0
PRICE_FEED_TIMEOUT = 5.0
PRICE_FEED_RETRIES = 2
PRICE_FEED_RETRY_DELAY = 0.5

# --- Quoting Defaults ---
DEFAULT_QUOTE_TIMEOUT = 8.0
DEFAULT_QUOTE_RETRY_DELAY = 0.05
DEFAULT_MAX_CONCURRENT_RPC = 3
DEFAULT_RPC_DISPATCH_INTERVAL = 0.05
# A price impact figure is only exact while the swap stays inside one tick range
RELIABLE_TICKS_CROSSED = 1

# --- Simulated Quotes ---
# Reference USD prices for the offline quote source
SIMULATED_USD_PRICES: Dict[str, float] = {
    'ETH': 1845.50,
    'WETH': 1845.50,
    'CBETH': 1950.00,
    'USDC': 1.0,
    'USDBC': 1.0,
    'DAI': 1.0,
    'LINK': 14.20,
    'AAVE': 92.50,
}
SIMULATED_GAS_ESTIMATES: Dict[int, int] = {
    100: 110000,
    500: 120000,
    3000: 130000,
    10000: 145000,
}

# --- Trade Records ---
DEFAULT_DB_PATH = 'data/trades.db'
DEFAULT_TRADE_STATUS = 'Completed'
EXECUTION_QUALITY_EXCELLENT = 99.0
EXECUTION_QUALITY_GOOD = 95.0
