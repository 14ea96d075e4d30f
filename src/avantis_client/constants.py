"""
Constants for the Avantis client.
"""

# Endpoints
DEFAULT_SOCKET_API_URL = "https://socket-api-pub.avantisfi.com/socket-api/v1/data"
DEFAULT_PRICE_FEED_URL = "https://hermes.pyth.network"
DEFAULT_PRICE_STREAM_URL = "wss://hermes.pyth.network/ws"
DEFAULT_TIMEOUT = 30.0
DEFAULT_RPC_TIMEOUT = 60.0

# Base mainnet
BASE_CHAIN_ID = 8453

# Price stream
STREAM_RECONNECT_DELAY = 1.0
STREAM_MAX_RECONNECT_ATTEMPTS = 5
STREAM_HEARTBEAT = 60.0

# Caching (seconds)
DEFAULT_CACHE_TTL = 300.0
PRICE_CACHE_TTL = 1.0

# Fixed-point precision
USDC_DECIMALS = 6
PRICE_DECIMALS = 10
NATIVE_DECIMALS = 18
BPS_DIVISOR = 10_000

# Trading limits
MIN_LEVERAGE = 2
MAX_LEVERAGE_CRYPTO = 500
MAX_SLIPPAGE_BPS = 10_000
DEFAULT_SLIPPAGE_BPS = 50

# 0.00035 ETH
DEFAULT_EXECUTION_FEE_WEI = 350_000_000_000_000

# USDC approved for trading when no amount is given
DEFAULT_USDC_APPROVAL = 100_000

# Risk model
LIQUIDATION_THRESHOLD = 0.9
BALANCED_SKEW = 50.0
DIRECTIONAL_BIAS_THRESHOLD = 5.0
DEPTH_LIMIT_FRACTION = 0.01
DEFAULT_TEST_POSITION_SIZE = 1000.0
HOURS_PER_DAY = 24

# Blend weights
DEFAULT_ASSET_WEIGHT = 0.7
DEFAULT_CATEGORY_WEIGHT = 0.3
WEIGHT_SUM_TOLERANCE = 0.001

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

GROUP_NAMES = {
    0: "Crypto 1",
    1: "Crypto 2",
    2: "Forex",
    3: "Commodities",
}

REFERRAL_REBATE_BY_TIER = {
    0: 0.0,
    1: 5.0,
    2: 10.0,
    3: 15.0,
}

# Loss protection fallback table
LOSS_PROTECTION_MAJOR_PAIRS = (0, 1)
LOSS_PROTECTION_MAJOR_TIERS = (1, 2, 3)
LOSS_PROTECTION_MAJOR_PERCENTAGE = 20.0
LOSS_PROTECTION_DEFAULT_PERCENTAGE = 10.0

# Contract addresses (Base mainnet)
TRADING_STORAGE_ADDRESS = "0x8a311D7048c35985aa31C131B9A13e03a5f7422d"
PAIR_STORAGE_ADDRESS = "0x5db3772136e5557EFE028Db05EE95C84D76faEC4"
PAIR_INFOS_ADDRESS = "0x81F22d0Cc22977c91bEfE648C9fddf1f2bd977e5"
PRICE_AGGREGATOR_ADDRESS = "0x64e2625621970F8cfA17B294670d61CB883dA511"
USDC_ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
TRADING_ADDRESS = "0x44914408af82bC9983bbb330e3578E1105e11d4e"
MULTICALL_ADDRESS = "0xA7cFc43872F4D7B0E6141ee8c36f1F7FEe5d099e"
REFERRAL_ADDRESS = "0x1A110bBA13A1f16cCa4b79758BD39290f29De82D"
BORROWING_FEES_ADDRESS = "0x7c4dB5D6bE4B0c2c0f7E3b7b4aFb5FcB1E5c5a0D"
TRADING_CALLBACKS_ADDRESS = "0x8d4E8c5F9B1a2C3d4E5F6A7B8C9D0E1F2A3B4C5D"

# Monitoring status codes
SUCCESS_STATUS_CODE = 200
ERROR_STATUS_CODE = 500
