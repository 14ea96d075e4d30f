"""
Trade-related models for Avantis client.

Immutable data structures for trade intents, their fixed-point
serialization, transactions and on-chain positions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Tuple


class OrderType(IntEnum):
    """Order type as understood by the Trading contract."""
    MARKET = 0
    STOP_LIMIT = 1
    LIMIT = 2
    MARKET_ZERO_FEE = 3


class MarginUpdateType(IntEnum):
    """Direction of a collateral update."""
    DEPOSIT = 0
    WITHDRAW = 1


@dataclass(frozen=True)
class TradeIntent:
    """
    A caller-constructed trade request, in human units.

    Attributes:
        trader: Trader address (0x-prefixed, 40 hex chars)
        pair_index: Pair index
        index: Trader-scoped slot index on the pair
        position_size: Position size in USDC
        open_price: Entry price, 0 for a market order
        is_long: True for a long
        leverage: Leverage multiplier
        tp: Take-profit price, 0 when unset
        sl: Stop-loss price, 0 when unset
        order_type: Order type
        slippage_bps: Slippage tolerance in basis points
    """
    trader: str
    pair_index: int
    position_size: float
    leverage: float
    is_long: bool
    index: int = 0
    open_price: float = 0.0
    tp: float = 0.0
    sl: float = 0.0
    order_type: OrderType = OrderType.MARKET
    slippage_bps: int = 50

    @property
    def collateral(self) -> float:
        """Collateral in USDC (size / leverage)."""
        if not self.leverage:
            return 0.0
        return self.position_size / self.leverage

    @property
    def is_market(self) -> bool:
        return self.open_price == 0


@dataclass(frozen=True)
class SerializedTrade:
    """Trade intent in fixed-point contract units."""
    trader: str
    pair_index: int
    index: int
    initial_pos_token: int
    position_size_usdc: int
    open_price: int
    buy: bool
    leverage: int
    tp: int
    sl: int

    def as_tuple(self) -> Tuple[Any, ...]:
        """Argument tuple in the order the Trading contract expects."""
        return (
            self.trader,
            self.pair_index,
            self.index,
            self.initial_pos_token,
            self.position_size_usdc,
            self.open_price,
            self.buy,
            self.leverage,
            self.tp,
            self.sl,
            0,  # timestamp, set on-chain
        )


@dataclass(frozen=True)
class TradeCost:
    """
    Cost breakdown of a trade.

    ``total`` is collateral plus opening fee in USDC. The execution fee is
    paid in the native token and is reported separately.
    """
    collateral: float
    opening_fee: float
    execution_fee: float
    total: float


@dataclass(frozen=True)
class LossProtectionInfo:
    percentage: float
    amount: float


@dataclass(frozen=True)
class ContractCall:
    """A contract function invocation, prior to ABI encoding."""
    address: str
    function: str
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class TransactionRequest:
    """An unsigned transaction."""
    to: str
    call: ContractCall
    value: int = 0  # wei
    gas: Optional[int] = None


@dataclass(frozen=True)
class TransactionReceipt:
    tx_hash: str
    success: bool
    block_number: Optional[int] = None
    gas_used: Optional[int] = None


@dataclass(frozen=True)
class PriceQuote:
    """A price read from the oracle."""
    feed_id: str
    price: float
    confidence: float = 0.0
    publish_time: int = 0


@dataclass(frozen=True)
class PriceUpdate:
    """Oracle update proof and the native fee required to post it."""
    data: Tuple[str, ...]
    update_fee: int  # wei


@dataclass(frozen=True)
class OpenPosition:
    """An open position enriched with live price and derived figures."""
    trader: str
    pair_index: int
    pair_name: str
    index: int
    position_size: float
    collateral: float
    leverage: float
    open_price: float
    is_long: bool
    tp: float
    sl: float
    open_timestamp: int
    accrued_margin_fee: float
    loss_protection_tier: int
    current_price: float
    unrealized_pnl: float
    unrealized_pnl_percentage: float
    liquidation_price: float

    @property
    def id(self) -> str:
        return f"{self.trader}-{self.pair_index}-{self.index}"


@dataclass(frozen=True)
class PendingOrder:
    """A pending limit order."""
    trader: str
    pair_index: int
    pair_name: str
    index: int
    position_size: float
    leverage: float
    limit_price: float
    is_long: bool
    tp: float
    sl: float
    slippage_percentage: float
    block: int
    current_price: float
    distance_to_limit_percentage: float

    @property
    def id(self) -> str:
        return f"{self.trader}-{self.pair_index}-{self.index}-limit"


class TradeStatus(Enum):
    """Trade lifecycle status enumeration."""
    DRAFT = "draft"  # Caller-constructed intent
    VALIDATED = "validated"  # All intent invariants passed
    SERIALIZED = "serialized"  # Converted to fixed-point units
    TX_BUILT = "tx_built"  # Transaction assembled with a price proof
    SUBMITTED = "submitted"  # Sent through the signer
    CONFIRMED = "confirmed"  # Receipt reports success
    REVERTED = "reverted"  # Receipt reports failure
    FAILED = "failed"  # Aborted before submission


@dataclass
class TradeTicket:
    """
    Tracks one trade intent through its lifecycle.

    Attributes:
        intent: The trade intent
        status: Current lifecycle status
        serialized: Fixed-point form, set once serialized
        transaction: Built transaction, set once built
        tx_hash: Transaction hash, set once submitted
        receipt: Receipt, set once confirmed or reverted
        error: Error message if the trade failed
        created_at: ISO timestamp when the ticket was created
        metadata: Additional metadata for the trade
    """
    intent: TradeIntent
    status: TradeStatus = TradeStatus.DRAFT
    serialized: Optional[SerializedTrade] = None
    transaction: Optional[TransactionRequest] = None
    tx_hash: Optional[str] = None
    receipt: Optional[TransactionReceipt] = None
    error: Optional[str] = None
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert ticket to dictionary for serialization."""
        return {
            "trader": self.intent.trader,
            "pair_index": self.intent.pair_index,
            "index": self.intent.index,
            "position_size": self.intent.position_size,
            "leverage": self.intent.leverage,
            "is_long": self.intent.is_long,
            "order_type": self.intent.order_type.name,
            "status": self.status.value,
            "tx_hash": self.tx_hash,
            "value": self.transaction.value if self.transaction else None,
            "block_number": self.receipt.block_number if self.receipt else None,
            "error": self.error,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }
