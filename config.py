"""Configuration for the BTC/JPY Arbitrage Monitor"""
import os

# ============================================================
# OPERATION MODE
# ============================================================
# Options:
# - "live": Poll the public REST ticker endpoints of each exchange
# - "simulation": Generate realistic mock quotes (for testing when network is blocked)
MODE = os.getenv("ARB_MODE", "live")

# Polling cadence and per-request timeout
POLL_INTERVAL = float(os.getenv("ARB_POLL_INTERVAL", "5"))  # seconds
REQUEST_TIMEOUT = float(os.getenv("ARB_REQUEST_TIMEOUT", "5"))  # seconds

# Public BTC/JPY ticker endpoints
EXCHANGE_TICKER_URLS = {
    "bitFlyer": "https://api.bitflyer.com/v1/ticker?product_code=BTC_JPY",
    "Coincheck": "https://coincheck.com/api/ticker",
    "Zaif": "https://api.zaif.jp/api/1/ticker/btc_jpy",
    "GMO Coin": "https://api.coin.z.com/public/v1/ticker?symbol=BTC_JPY",
    "bitbank": "https://public.bitbank.cc/btc_jpy/ticker",
    # BITPoint has no public ticker; CoinGecko only reports a last price
    "BITPoint": "https://api.coingecko.com/api/v3/simple/price?ids=bitcoin&vs_currencies=jpy",
}

# ============================================================
# DETECTION
# ============================================================
# Minimum gross spread percentage to flag as opportunity
MIN_PROFIT_THRESHOLD = float(os.getenv("ARB_MIN_PROFIT_THRESHOLD", "0.1"))  # 0.1%

# Quantity used to value each opportunity
REFERENCE_QUANTITY = float(os.getenv("ARB_REFERENCE_QUANTITY", "1"))  # BTC

# ============================================================
# FEES
# ============================================================
# Bitcoin network fee paid on every BTC transfer
BTC_NETWORK_FEE = 0.0001  # BTC

# Rates are fractions (0.0015 = 0.15%), negative maker rates are rebates.
# Withdrawal fees are absolute: JPY for bank withdrawals, BTC for coin withdrawals.
FEE_SCHEDULES = {
    "bitFlyer": {"maker": 0.0001, "taker": 0.0015, "jpy_withdrawal": 550, "btc_withdrawal": 0.0004},
    "Coincheck": {"maker": 0.0, "taker": 0.0, "jpy_withdrawal": 407, "btc_withdrawal": 0.0005},
    "Zaif": {"maker": 0.0, "taker": 0.001, "jpy_withdrawal": 385, "btc_withdrawal": 0.0001},
    "GMO Coin": {"maker": -0.0001, "taker": 0.0005, "jpy_withdrawal": 0, "btc_withdrawal": 0.0},
    "bitbank": {"maker": -0.0002, "taker": 0.0012, "jpy_withdrawal": 550, "btc_withdrawal": 0.0006},
    "BITPoint": {"maker": 0.0, "taker": 0.0, "jpy_withdrawal": 0, "btc_withdrawal": 0.0},
}

# Applied to any exchange missing from FEE_SCHEDULES. Never zero, so an
# unknown venue cannot overstate profit.
DEFAULT_FEE_SCHEDULE = {"maker": 0.001, "taker": 0.001, "jpy_withdrawal": 500, "btc_withdrawal": 0.0005}

# ============================================================
# PERSISTENCE
# ============================================================
# PostgreSQL DSN, e.g. "postgresql://postgres@localhost:5432/arbitrage".
# Empty means in-memory history only.
DATABASE_URL = os.getenv("DATABASE_URL", "")
PERSISTENCE_QUEUE_SIZE = 100  # pending cycles before new ones are dropped

# ============================================================
# WEB SERVER
# ============================================================
WEB_HOST = os.getenv("WEB_HOST", "0.0.0.0")
WEB_PORT = int(os.getenv("PORT", "3001"))
MAX_WS_CONNECTIONS = 50
CORS_ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
