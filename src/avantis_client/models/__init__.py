"""
Data models for Avantis client.

This package contains all data structures used throughout the Avantis client,
following the state-first principle with immutable data structures.
"""

from .config import ClientConfig, ContractAddresses, RetryConfig
from .market import (
    Category,
    DirectorySnapshot,
    Depth,
    Fee,
    Instrument,
    LongShortRatio,
    MarginFee,
    OpenInterest,
    PairListing,
    PairSpread,
    RolloverFee,
)
from .metrics import (
    BiasDirection,
    BlendWeights,
    BlendedMetrics,
    BlendedSkew,
    BlendedUtilization,
    DirectionalBias,
)
from .trade import (
    ContractCall,
    LossProtectionInfo,
    MarginUpdateType,
    OpenPosition,
    OrderType,
    PendingOrder,
    PriceQuote,
    PriceUpdate,
    SerializedTrade,
    TradeCost,
    TradeIntent,
    TradeStatus,
    TradeTicket,
    TransactionReceipt,
    TransactionRequest,
)
from .snapshot import OiSkew, PairSnapshot, SimplifiedSnapshot, Snapshot, SnapshotGroup

__all__ = [
    # Configuration
    "ClientConfig",
    "ContractAddresses",
    "RetryConfig",
    # Market
    "Category",
    "DirectorySnapshot",
    "Depth",
    "Fee",
    "Instrument",
    "LongShortRatio",
    "MarginFee",
    "OpenInterest",
    "PairListing",
    "PairSpread",
    "RolloverFee",
    # Metrics
    "BiasDirection",
    "BlendWeights",
    "BlendedMetrics",
    "BlendedSkew",
    "BlendedUtilization",
    "DirectionalBias",
    # Trades
    "ContractCall",
    "LossProtectionInfo",
    "MarginUpdateType",
    "OpenPosition",
    "OrderType",
    "PendingOrder",
    "PriceQuote",
    "PriceUpdate",
    "SerializedTrade",
    "TradeCost",
    "TradeIntent",
    "TradeStatus",
    "TradeTicket",
    "TransactionReceipt",
    "TransactionRequest",
    # Snapshots
    "OiSkew",
    "PairSnapshot",
    "SimplifiedSnapshot",
    "Snapshot",
    "SnapshotGroup",
]
