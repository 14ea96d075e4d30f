"""
Trade Engine - trade economics, validation and transaction building.

This module covers the lifecycle of a trade intent:
- Validation of the intent against protocol limits
- Serialization into fixed-point contract units
- Cost, liquidation price and PnL calculations
- Building unsigned transactions (open, close, TP/SL, margin, cancel)
- Submitting them through a signer and tracking the outcome

Example usage:
    from avantis_client import AvantisClient, TradeIntent

    async with AvantisClient.from_env(chain_reader=reader, signer=signer) as client:
        intent = TradeIntent(
            trader=signer.address,
            pair_index=0,
            position_size=1000.0,
            leverage=10,
            is_long=True,
        )
        cost = await client.trade.calculate_cost(intent)
        ticket = await client.trade.open_trade(intent)
        print(f"Trade {ticket.status.value}: {ticket.tx_hash}")
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .chain import ContractReader, Signer
from .constants import (
    BPS_DIVISOR,
    DEFAULT_EXECUTION_FEE_WEI,
    DEFAULT_USDC_APPROVAL,
    HOURS_PER_DAY,
    LIQUIDATION_THRESHOLD,
    MAX_LEVERAGE_CRYPTO,
    MAX_SLIPPAGE_BPS,
    MIN_LEVERAGE,
)
from .exceptions import (
    InstrumentNotFound,
    InvalidAddress,
    InvalidCollateral,
    InvalidIndex,
    InvalidLeverage,
    InvalidSlippage,
    InvalidTpSl,
    MissingSigner,
    PriceFeedError,
    TradeValidationError,
)
from .fee_engine import FeeEngine
from .models.config import ContractAddresses
from .models.market import DirectorySnapshot, Instrument, LongShortRatio, RolloverFee
from .models.trade import (
    ContractCall,
    MarginUpdateType,
    OpenPosition,
    PendingOrder,
    PriceUpdate,
    SerializedTrade,
    TradeCost,
    TradeIntent,
    TradeStatus,
    TradeTicket,
    TransactionReceipt,
    TransactionRequest,
)
from .pair_directory import PairDirectory, PairLike
from .price_feed import PriceSource
from .utils import (
    from_price_units,
    from_usdc_units,
    from_wei,
    shorten_address,
    to_price_units,
    to_usdc_units,
    validate_address,
)

logger = logging.getLogger(__name__)


# Pure trade math
def calculate_collateral(position_size: float, leverage: float) -> float:
    """Collateral backing a position (size / leverage)."""
    if leverage <= 0:
        raise ValueError(f"Leverage must be positive, got {leverage}")
    return position_size / leverage


def calculate_position_size(collateral: float, leverage: float) -> float:
    return collateral * leverage


def calculate_liquidation_price(
    entry_price: float,
    leverage: float,
    is_long: bool,
    margin_fee_percentage: float = 0.0,
) -> float:
    """
    Price at which the position reaches the 90% loss margin call level.

    Args:
        entry_price: Entry price
        leverage: Leverage multiplier
        is_long: True for long positions
        margin_fee_percentage: Margin fees as a percentage of collateral,
            which bring liquidation closer

    Examples:
        >>> calculate_liquidation_price(2000, 10, True)
        1820.0
        >>> calculate_liquidation_price(2000, 10, False)
        2180.0
    """
    if leverage <= 0:
        raise ValueError(f"Leverage must be positive, got {leverage}")

    effective_threshold = LIQUIDATION_THRESHOLD - margin_fee_percentage / 100
    price_change = effective_threshold / leverage * entry_price

    return entry_price - price_change if is_long else entry_price + price_change


def calculate_pnl(
    entry_price: float,
    current_price: float,
    position_size: float,
    is_long: bool,
    fees: float = 0.0,
) -> float:
    """PnL in USDC: size times the directional price change ratio, less fees."""
    if entry_price <= 0:
        raise ValueError(f"Entry price must be positive, got {entry_price}")

    if is_long:
        price_change = (current_price - entry_price) / entry_price
    else:
        price_change = (entry_price - current_price) / entry_price

    return position_size * price_change - fees


def calculate_pnl_percentage(
    entry_price: float,
    current_price: float,
    leverage: float,
    is_long: bool,
) -> float:
    """Leveraged PnL percentage. Fees are not included."""
    if entry_price <= 0:
        raise ValueError(f"Entry price must be positive, got {entry_price}")

    if is_long:
        change_percentage = (current_price - entry_price) / entry_price * 100
    else:
        change_percentage = (entry_price - current_price) / entry_price * 100

    return change_percentage * leverage


def calculate_tp_sl_prices(
    entry_price: float,
    is_long: bool,
    tp_percent: Optional[float] = None,
    sl_percent: Optional[float] = None,
) -> Tuple[float, float]:
    """
    Take profit and stop loss prices from percentage offsets.

    Args:
        entry_price: Entry price
        is_long: True for long positions
        tp_percent: Take profit distance in percent, None for no TP
        sl_percent: Stop loss distance in percent, None for no SL

    Returns:
        Tuple of (tp_price, sl_price); 0 stands for unset

    Raises:
        ValueError: If the entry price or a percentage is not positive, or
            the stop loss would be at or below zero

    Examples:
        >>> calculate_tp_sl_prices(3500, True, 1.0, 0.5)
        (3535.0, 3482.5)

        >>> calculate_tp_sl_prices(3500, False, 1.0, 0.5)
        (3465.0, 3517.5)
    """
    if entry_price <= 0:
        raise ValueError(f"Entry price must be positive, got {entry_price}")
    if tp_percent is not None and tp_percent <= 0:
        raise ValueError(f"TP percent must be positive, got {tp_percent}")
    if sl_percent is not None and sl_percent <= 0:
        raise ValueError(f"SL percent must be positive, got {sl_percent}")

    direction = 1 if is_long else -1

    tp_price = 0.0
    if tp_percent is not None:
        tp_price = entry_price * (1 + direction * tp_percent / 100)

    sl_price = 0.0
    if sl_percent is not None:
        sl_price = entry_price * (1 - direction * sl_percent / 100)
        if sl_price <= 0:
            raise ValueError(f"SL percent {sl_percent} puts stop loss at or below zero")

    return tp_price, sl_price


def serialize_trade(intent: TradeIntent) -> SerializedTrade:
    """Convert an intent to contract units (USDC x 10^6, price x 10^10)."""
    _check_whole_leverage(intent.leverage)
    return SerializedTrade(
        trader=intent.trader,
        pair_index=intent.pair_index,
        index=intent.index,
        initial_pos_token=0,
        position_size_usdc=to_usdc_units(intent.position_size),
        open_price=to_price_units(intent.open_price),
        buy=intent.is_long,
        leverage=int(intent.leverage),
        tp=to_price_units(intent.tp),
        sl=to_price_units(intent.sl),
    )


def _check_whole_leverage(leverage: float) -> None:
    # The contract stores leverage as an integer
    if leverage != int(leverage):
        raise InvalidLeverage(
            f"Leverage must be a whole number, got {leverage}", field="leverage", value=leverage
        )


def _check_indexes(pair_index: int, index: int) -> None:
    if pair_index < 0:
        raise InvalidIndex(
            f"Pair index cannot be negative, got {pair_index}", field="pair_index", value=pair_index
        )
    if index < 0:
        raise InvalidIndex(f"Trade index cannot be negative, got {index}", field="index", value=index)


class TradeEngine:
    """Validates, prices and builds trades."""

    def __init__(
        self,
        directory: PairDirectory,
        fees: FeeEngine,
        contracts: ContractReader,
        addresses: ContractAddresses,
        price_source: Optional[PriceSource] = None,
        signer: Optional[Signer] = None,
    ):
        self._directory = directory
        self._fees = fees
        self._contracts = contracts
        self._addresses = addresses
        self._price_source = price_source
        self._signer = signer

    # Signer
    @property
    def signer(self) -> Optional[Signer]:
        return self._signer

    def set_signer(self, signer: Optional[Signer]) -> None:
        self._signer = signer

    def _require_signer(self) -> Signer:
        signer = self._signer
        if signer is None:
            raise MissingSigner("A signer is required to submit transactions")
        return signer

    def _resolve_trader(self, trader: Optional[str]) -> str:
        if trader:
            return trader
        if self._signer is None:
            raise MissingSigner("No trader address provided and no signer set")
        return self._signer.address

    # Validation and serialization
    def validate(self, intent: TradeIntent, instrument: Optional[Instrument] = None) -> None:
        """
        Check a trade intent. The first failing check raises.

        Leverage is bounded by the instrument when given, otherwise by the
        protocol defaults. TP/SL are checked against the entry only for
        limit-style intents (entry > 0).

        Raises:
            InvalidAddress, InvalidCollateral, InvalidLeverage, InvalidIndex,
            InvalidSlippage, InvalidTpSl
        """
        if not validate_address(intent.trader):
            raise InvalidAddress(
                f"Invalid trader address: {intent.trader!r}", field="trader", value=intent.trader
            )

        collateral = intent.collateral
        if not collateral > 0:
            raise InvalidCollateral(
                f"Collateral must be positive, got {collateral} "
                f"(size {intent.position_size} / leverage {intent.leverage})",
                field="collateral",
                value=collateral,
            )

        min_leverage = instrument.min_leverage if instrument else MIN_LEVERAGE
        max_leverage = instrument.max_leverage if instrument else MAX_LEVERAGE_CRYPTO
        if not min_leverage <= intent.leverage <= max_leverage:
            raise InvalidLeverage(
                f"Leverage must be between {min_leverage} and {max_leverage}, got {intent.leverage}",
                field="leverage",
                value=intent.leverage,
            )
        _check_whole_leverage(intent.leverage)

        _check_indexes(intent.pair_index, intent.index)

        if not 0 <= intent.slippage_bps <= MAX_SLIPPAGE_BPS:
            raise InvalidSlippage(
                f"Slippage must be between 0 and {MAX_SLIPPAGE_BPS} bps, got {intent.slippage_bps}",
                field="slippage_bps",
                value=intent.slippage_bps,
            )

        if intent.open_price > 0:
            self._validate_tp_sl(intent)

    @staticmethod
    def _validate_tp_sl(intent: TradeIntent) -> None:
        entry = intent.open_price
        side = "long" if intent.is_long else "short"

        if intent.tp > 0:
            tp_ok = intent.tp > entry if intent.is_long else intent.tp < entry
            if not tp_ok:
                relation = "above" if intent.is_long else "below"
                raise InvalidTpSl(
                    f"Take profit {intent.tp} must be {relation} entry {entry} for a {side}",
                    field="tp",
                    value=intent.tp,
                )

        if intent.sl > 0:
            sl_ok = intent.sl < entry if intent.is_long else intent.sl > entry
            if not sl_ok:
                relation = "below" if intent.is_long else "above"
                raise InvalidTpSl(
                    f"Stop loss {intent.sl} must be {relation} entry {entry} for a {side}",
                    field="sl",
                    value=intent.sl,
                )

    def serialize(self, intent: TradeIntent) -> SerializedTrade:
        return serialize_trade(intent)

    # Fees and estimates
    async def execution_fee(self) -> int:
        """Execution fee in wei, falling back to 0.00035 ETH if unreadable."""
        fee = await self._contracts.read(
            self._addresses.trading, "executionFee", fallback=DEFAULT_EXECUTION_FEE_WEI
        )
        return int(fee)

    async def calculate_cost(self, intent: TradeIntent) -> TradeCost:
        """
        Cost of opening a trade.

        ``total`` is collateral plus opening fee in USDC; the execution fee
        is in the native token and is not added to it.
        """
        collateral = intent.collateral
        opening_fee, execution_fee_wei = await asyncio.gather(
            self._fees.opening_fee_usdc(intent),
            self.execution_fee(),
        )

        return TradeCost(
            collateral=collateral,
            opening_fee=opening_fee,
            execution_fee=from_wei(execution_fee_wei),
            total=collateral + opening_fee,
        )

    async def estimate_liquidation_price(self, intent: TradeIntent) -> float:
        """
        Liquidation price for an intent.

        Market intents are priced from the price source first. Margin fees
        are projected as 24 hours of the hourly rate for the intent's side.
        """
        entry_price = intent.open_price
        if entry_price == 0:
            instrument = await self._directory.get(intent.pair_index)
            entry_price = await self._current_price(instrument)

        margin_fee = await self._fees.margin_fee(intent.pair_index)
        margin_fee_estimate = margin_fee.bps_for(intent.is_long) * HOURS_PER_DAY

        return calculate_liquidation_price(
            entry_price,
            intent.leverage,
            intent.is_long,
            margin_fee_estimate / BPS_DIVISOR,
        )

    async def current_price(self, pair: PairLike) -> float:
        """Live price of a pair from the price source."""
        instrument = await self._directory.get(pair)
        return await self._current_price(instrument)

    async def _current_price(self, instrument: Instrument) -> float:
        if self._price_source is None:
            raise PriceFeedError("No price source configured")
        return await self._price_source.get_price(instrument)

    async def _price_update(self, instrument: Instrument) -> PriceUpdate:
        if self._price_source is None:
            raise PriceFeedError("No price source configured")
        if not instrument.feed_id:
            raise PriceFeedError(f"Pair {instrument.name} has no price feed")

        update = await self._price_source.get_price_update([instrument.feed_id])
        if not update.data:
            raise PriceFeedError(f"Empty price update for {instrument.name}")
        return update

    # Transaction builders
    def _trading_tx(self, function: str, args: Sequence[Any], value: int = 0) -> TransactionRequest:
        trading = self._addresses.trading
        return TransactionRequest(
            to=trading,
            call=ContractCall(address=trading, function=function, args=tuple(args)),
            value=value,
        )

    async def build_open_tx(self, intent: TradeIntent) -> TransactionRequest:
        """
        Build an openTrade transaction.

        The transaction carries a fresh oracle proof and a value of
        execution fee plus oracle update fee.

        Raises:
            TradeValidationError: If the intent is invalid
            InstrumentNotFound: If the pair is not listed
            PriceFeedError: If no price proof can be obtained
        """
        self.validate(intent)
        instrument = await self._directory.get(intent.pair_index)
        self.validate(intent, instrument)

        update = await self._price_update(instrument)
        serialized = self.serialize(intent)
        execution_fee = await self.execution_fee()

        return self._trading_tx(
            "openTrade",
            (serialized.as_tuple(), int(intent.order_type), intent.slippage_bps, update.data),
            value=execution_fee + update.update_fee,
        )

    async def build_close_tx(self, pair_index: int, index: int) -> TransactionRequest:
        """Build a market close transaction, carrying a fresh oracle proof."""
        _check_indexes(pair_index, index)
        instrument = await self._directory.get(pair_index)
        update = await self._price_update(instrument)

        return self._trading_tx(
            "closeTradeMarket", (pair_index, index, update.data), value=update.update_fee
        )

    async def build_update_tp_tx(self, pair_index: int, index: int, tp: float) -> TransactionRequest:
        _check_indexes(pair_index, index)
        return self._trading_tx("updateTp", (pair_index, index, to_price_units(tp)))

    async def build_update_sl_tx(self, pair_index: int, index: int, sl: float) -> TransactionRequest:
        _check_indexes(pair_index, index)
        return self._trading_tx("updateSl", (pair_index, index, to_price_units(sl)))

    async def build_update_margin_tx(
        self,
        pair_index: int,
        index: int,
        collateral_delta: float,
        update_type: MarginUpdateType,
    ) -> TransactionRequest:
        """Build a collateral deposit/withdrawal. The delta's sign is ignored."""
        _check_indexes(pair_index, index)
        return self._trading_tx(
            "updateMargin",
            (pair_index, index, to_usdc_units(abs(collateral_delta)), int(update_type)),
        )

    async def build_cancel_limit_order_tx(self, pair_index: int, index: int) -> TransactionRequest:
        _check_indexes(pair_index, index)
        return self._trading_tx("cancelOpenLimitOrder", (pair_index, index))

    # Submission
    async def submit(self, tx: TransactionRequest) -> TransactionReceipt:
        """Send a transaction through the signer and wait for its receipt."""
        signer = self._require_signer()
        tx_hash = await signer.send_transaction(tx)
        logger.info(
            f"Submitted {tx.call.function} transaction {tx_hash} "
            f"from {shorten_address(signer.address)}"
        )

        receipt = await signer.wait_for_receipt(tx_hash)
        if receipt.success:
            logger.info(f"Transaction {tx_hash} confirmed in block {receipt.block_number}")
        else:
            logger.warning(f"Transaction {tx_hash} reverted")
        return receipt

    async def open_trade(self, intent: TradeIntent) -> TradeTicket:
        """
        Validate, build and submit an open-trade transaction.

        Validation and signer errors are raised. Failures after validation
        leave the ticket FAILED (before submission) or REVERTED with the
        error recorded, and no transaction is sent once building fails. If
        the receipt cannot be fetched the ticket stays SUBMITTED with its
        tx hash and the error recorded.
        """
        signer = self._require_signer()
        ticket = TradeTicket(intent=intent)

        self.validate(intent)
        ticket.status = TradeStatus.VALIDATED

        try:
            instrument = await self._directory.get(intent.pair_index)
            self.validate(intent, instrument)
            update = await self._price_update(instrument)

            ticket.serialized = self.serialize(intent)
            ticket.status = TradeStatus.SERIALIZED

            execution_fee = await self.execution_fee()
            ticket.transaction = self._trading_tx(
                "openTrade",
                (ticket.serialized.as_tuple(), int(intent.order_type), intent.slippage_bps, update.data),
                value=execution_fee + update.update_fee,
            )
            ticket.status = TradeStatus.TX_BUILT
        except (InstrumentNotFound, TradeValidationError):
            raise
        except Exception as e:
            logger.error(f"Failed to build trade on pair {intent.pair_index}: {e}")
            ticket.status = TradeStatus.FAILED
            ticket.error = str(e)
            return ticket

        try:
            ticket.tx_hash = await signer.send_transaction(ticket.transaction)
        except Exception as e:
            logger.error(f"Failed to submit trade on pair {intent.pair_index}: {e}")
            ticket.status = TradeStatus.FAILED
            ticket.error = str(e)
            return ticket

        ticket.status = TradeStatus.SUBMITTED
        logger.info(f"Trade submitted on pair {intent.pair_index}: {ticket.tx_hash}")

        try:
            ticket.receipt = await signer.wait_for_receipt(ticket.tx_hash)
        except Exception as e:
            # Already broadcast: keep the hash so the caller can track it
            logger.error(f"Receipt for trade {ticket.tx_hash} unavailable: {e!r}")
            ticket.error = f"Receipt unavailable: {e!r}"
            return ticket

        if ticket.receipt.success:
            ticket.status = TradeStatus.CONFIRMED
            logger.info(f"Trade {ticket.tx_hash} confirmed")
        else:
            ticket.status = TradeStatus.REVERTED
            ticket.error = "Transaction reverted"
            logger.warning(f"Trade {ticket.tx_hash} reverted")

        return ticket

    async def close_trade(self, pair_index: int, index: int) -> TransactionReceipt:
        self._require_signer()
        return await self.submit(await self.build_close_tx(pair_index, index))

    async def update_tp(self, pair_index: int, index: int, tp: float) -> TransactionReceipt:
        self._require_signer()
        return await self.submit(await self.build_update_tp_tx(pair_index, index, tp))

    async def update_sl(self, pair_index: int, index: int, sl: float) -> TransactionReceipt:
        self._require_signer()
        return await self.submit(await self.build_update_sl_tx(pair_index, index, sl))

    async def update_margin(
        self,
        pair_index: int,
        index: int,
        collateral_delta: float,
        update_type: MarginUpdateType,
    ) -> TransactionReceipt:
        self._require_signer()
        tx = await self.build_update_margin_tx(pair_index, index, collateral_delta, update_type)
        return await self.submit(tx)

    async def cancel_limit_order(self, pair_index: int, index: int) -> TransactionReceipt:
        self._require_signer()
        return await self.submit(await self.build_cancel_limit_order_tx(pair_index, index))

    # Queries
    async def _fetch_positions(self, trader: str) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        result = await self._contracts.read(self._addresses.multicall, "getPositions", trader)
        positions, pending_orders = result
        return list(positions), list(pending_orders)

    async def _price_or(self, instrument: Optional[Instrument], fallback: float) -> float:
        """Live price, or ``fallback`` if it cannot be read."""
        if instrument is None or self._price_source is None:
            return fallback
        try:
            return await self._price_source.get_price(instrument)
        except Exception as e:
            logger.warning(f"Price unavailable for {instrument.name} ({e}), using {fallback}")
            return fallback

    @staticmethod
    def _pair_name(snapshot: DirectorySnapshot, pair_index: int) -> Tuple[Optional[Instrument], str]:
        instrument = snapshot.instruments.get(pair_index)
        if instrument is None:
            return None, f"Pair {pair_index}"
        return instrument, instrument.name

    async def list_open_positions(self, trader: Optional[str] = None) -> List[OpenPosition]:
        """
        Open positions of a trader with live price, PnL and liquidation price.

        Price failures fall back to the entry price.
        """
        trader = self._resolve_trader(trader)
        raw_positions, _ = await self._fetch_positions(trader)
        snapshot = await self._directory.refresh()

        resolved = []
        for raw in raw_positions:
            pair_index = int(raw["trade"]["pairIndex"])
            instrument, name = self._pair_name(snapshot, pair_index)
            open_price = from_price_units(raw["trade"]["openPrice"])
            resolved.append((raw, instrument, name, open_price))

        prices = await asyncio.gather(
            *(self._price_or(instrument, open_price) for _, instrument, _, open_price in resolved)
        )

        return [
            self._build_position(raw, name, open_price, current_price)
            for (raw, _, name, open_price), current_price in zip(resolved, prices)
        ]

    @staticmethod
    def _build_position(
        raw: Dict[str, Any],
        pair_name: str,
        open_price: float,
        current_price: float,
    ) -> OpenPosition:
        trade = raw["trade"]
        trade_info = raw.get("tradeInfo") or {}

        position_size = from_usdc_units(trade["positionSizeUSDC"])
        leverage = float(trade["leverage"])
        is_long = bool(trade["buy"])
        collateral = position_size / leverage if leverage > 0 else 0.0
        margin_fee = from_usdc_units(raw.get("marginFee", 0))
        margin_fee_percentage = margin_fee / collateral * 100 if collateral > 0 else 0.0

        if open_price > 0:
            pnl = calculate_pnl(open_price, current_price, position_size, is_long, margin_fee)
            pnl_percentage = calculate_pnl_percentage(open_price, current_price, leverage, is_long)
        else:
            pnl = -margin_fee
            pnl_percentage = 0.0

        liquidation_price = 0.0
        if leverage > 0:
            liquidation_price = calculate_liquidation_price(
                open_price, leverage, is_long, margin_fee_percentage
            )

        return OpenPosition(
            trader=trade["trader"],
            pair_index=int(trade["pairIndex"]),
            pair_name=pair_name,
            index=int(trade["index"]),
            position_size=position_size,
            collateral=collateral,
            leverage=leverage,
            open_price=open_price,
            is_long=is_long,
            tp=from_price_units(trade.get("tp", 0)),
            sl=from_price_units(trade.get("sl", 0)),
            open_timestamp=int(trade.get("timestamp", 0)),
            accrued_margin_fee=margin_fee,
            loss_protection_tier=int(trade_info.get("lossProtectionTier", 0)),
            current_price=current_price,
            unrealized_pnl=pnl,
            unrealized_pnl_percentage=pnl_percentage,
            liquidation_price=liquidation_price,
        )

    async def list_pending_orders(self, trader: Optional[str] = None) -> List[PendingOrder]:
        """Pending limit orders of a trader with distance to the limit price."""
        trader = self._resolve_trader(trader)
        _, raw_orders = await self._fetch_positions(trader)
        snapshot = await self._directory.refresh()

        resolved = []
        for raw in raw_orders:
            order = raw["order"]
            instrument, name = self._pair_name(snapshot, int(order["pairIndex"]))
            resolved.append((order, instrument, name))

        # Unknown prices fall back to 0, which reports no distance
        prices = await asyncio.gather(
            *(self._price_or(instrument, 0.0) for _, instrument, _ in resolved)
        )

        orders = []
        for (order, _, name), current_price in zip(resolved, prices):
            limit_price = from_price_units(order["price"])
            distance = 0.0
            if current_price > 0:
                distance = abs((current_price - limit_price) / current_price) * 100

            orders.append(PendingOrder(
                trader=order["trader"],
                pair_index=int(order["pairIndex"]),
                pair_name=name,
                index=int(order["index"]),
                position_size=from_usdc_units(order["positionSize"]),
                leverage=float(order["leverage"]),
                limit_price=limit_price,
                is_long=bool(order["buy"]),
                tp=from_price_units(order.get("tp", 0)),
                sl=from_price_units(order.get("sl", 0)),
                slippage_percentage=from_price_units(order.get("slippageP", 0)),
                block=int(order.get("block", 0)),
                current_price=current_price,
                distance_to_limit_percentage=distance,
            ))

        return orders

    async def get_position(
        self,
        pair_index: int,
        index: int,
        trader: Optional[str] = None,
    ) -> Optional[OpenPosition]:
        positions = await self.list_open_positions(trader)
        for position in positions:
            if position.pair_index == pair_index and position.index == index:
                return position
        return None

    async def get_long_short_ratios(self) -> Dict[int, LongShortRatio]:
        """Long/short split of every pair's open interest, in percent."""
        long_ratios, short_ratios = await self._contracts.read(
            self._addresses.multicall, "getLongShortRatios"
        )
        # Two decimals on chain
        return {
            pair_index: LongShortRatio(long=int(long_value) / 100, short=int(short_value) / 100)
            for pair_index, (long_value, short_value) in enumerate(zip(long_ratios, short_ratios))
        }

    async def get_margin_info(self) -> Dict[int, RolloverFee]:
        """Per-block rollover fees of every pair, as stored on chain."""
        base_fees, long_fees, short_fees = await self._contracts.read(
            self._addresses.multicall, "getMargins"
        )
        return {
            pair_index: RolloverFee(base=float(base), long=float(long_fee), short=float(short_fee))
            for pair_index, (base, long_fee, short_fee) in enumerate(
                zip(base_fees, long_fees, short_fees)
            )
        }

    # USDC
    async def get_usdc_balance(self, address: Optional[str] = None) -> float:
        """USDC balance of ``address``, or of the signer when omitted."""
        owner = self._resolve_trader(address)
        units = await self._contracts.read(self._addresses.usdc, "balanceOf", owner)
        return from_usdc_units(units)

    async def get_usdc_allowance_for_trading(self, address: Optional[str] = None) -> float:
        """USDC the trading storage contract may spend on behalf of ``address``."""
        owner = self._resolve_trader(address)
        units = await self._contracts.read(
            self._addresses.usdc, "allowance", owner, self._addresses.trading_storage
        )
        return from_usdc_units(units)

    def build_approve_usdc_tx(self, amount: float = DEFAULT_USDC_APPROVAL) -> TransactionRequest:
        """Build a USDC approve transaction for the trading storage contract."""
        if amount < 0:
            raise InvalidCollateral(
                f"Approval amount cannot be negative, got {amount}", field="amount", value=amount
            )
        usdc = self._addresses.usdc
        return TransactionRequest(
            to=usdc,
            call=ContractCall(
                address=usdc,
                function="approve",
                args=(self._addresses.trading_storage, to_usdc_units(amount)),
            ),
        )

    async def approve_usdc_for_trading(self, amount: float = DEFAULT_USDC_APPROVAL) -> TransactionReceipt:
        self._require_signer()
        receipt = await self.submit(self.build_approve_usdc_tx(amount))
        logger.info(f"Approved {amount} USDC for trading: {receipt.tx_hash}")
        return receipt
