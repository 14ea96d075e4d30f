"""
Avantis Client - Python client for the Avantis perpetuals protocol.

This package provides market data (pair directory, open interest,
utilization, skew, fees, snapshots) and trade building/submission for
Avantis on Base.
"""

from .client import AvantisClient, create_avantis_client
from .asset_metrics import AssetMetrics
from .blended_metrics import BlendedMetricsEngine
from .category_metrics import CategoryMetrics
from .chain import ChainReader, ContractReader, Signer
from .exceptions import (
    AvantisError,
    ConfigurationError,
    FetchFailed,
    InstrumentNotFound,
    InvalidAddress,
    InvalidCollateral,
    InvalidConfiguration,
    InvalidIndex,
    InvalidLeverage,
    InvalidSlippage,
    InvalidTpSl,
    MissingChainReader,
    MissingSigner,
    PriceFeedError,
    TradeValidationError,
)
from .fee_engine import FeeEngine
from .models import (
    # Configuration
    ClientConfig,
    ContractAddresses,
    RetryConfig,
    # Market
    Category,
    Depth,
    Fee,
    Instrument,
    LongShortRatio,
    MarginFee,
    OpenInterest,
    RolloverFee,
    # Metrics
    BiasDirection,
    BlendWeights,
    BlendedMetrics,
    DirectionalBias,
    # Trades
    MarginUpdateType,
    OpenPosition,
    OrderType,
    PendingOrder,
    TradeCost,
    TradeIntent,
    TradeStatus,
    TradeTicket,
    TransactionReceipt,
    TransactionRequest,
    # Snapshots
    Snapshot,
    SimplifiedSnapshot,
)
from .pair_directory import ByIndex, ByName, PairDirectory
from .pair_source import PairSource, SocketApiPairSource
from .price_feed import HermesPriceFeed, PriceSource
from .price_stream import HermesPriceStream
from .snapshot import SnapshotAggregator
from .trade_engine import (
    TradeEngine,
    calculate_liquidation_price,
    calculate_pnl,
    calculate_pnl_percentage,
    calculate_tp_sl_prices,
)
from .trading_parameters import TradingParameters

__all__ = [
    # Main Client
    "AvantisClient",
    "create_avantis_client",
    # Components
    "AssetMetrics",
    "BlendedMetricsEngine",
    "CategoryMetrics",
    "FeeEngine",
    "PairDirectory",
    "SnapshotAggregator",
    "TradeEngine",
    "TradingParameters",
    # Collaborators
    "ChainReader",
    "ContractReader",
    "Signer",
    "PairSource",
    "SocketApiPairSource",
    "PriceSource",
    "HermesPriceFeed",
    "HermesPriceStream",
    # Pair references
    "ByIndex",
    "ByName",
    # Models
    "ClientConfig",
    "ContractAddresses",
    "RetryConfig",
    "Category",
    "Depth",
    "Fee",
    "Instrument",
    "LongShortRatio",
    "MarginFee",
    "OpenInterest",
    "RolloverFee",
    "BiasDirection",
    "BlendWeights",
    "BlendedMetrics",
    "DirectionalBias",
    "MarginUpdateType",
    "OpenPosition",
    "OrderType",
    "PendingOrder",
    "TradeCost",
    "TradeIntent",
    "TradeStatus",
    "TradeTicket",
    "TransactionReceipt",
    "TransactionRequest",
    "Snapshot",
    "SimplifiedSnapshot",
    # Trade math
    "calculate_liquidation_price",
    "calculate_pnl",
    "calculate_pnl_percentage",
    "calculate_tp_sl_prices",
    # Exceptions
    "AvantisError",
    "ConfigurationError",
    "InvalidConfiguration",
    "MissingSigner",
    "MissingChainReader",
    "TradeValidationError",
    "InvalidAddress",
    "InvalidCollateral",
    "InvalidLeverage",
    "InvalidIndex",
    "InvalidSlippage",
    "InvalidTpSl",
    "InstrumentNotFound",
    "FetchFailed",
    "PriceFeedError",
]
