"""
Unit tests for the trade engine.

Tests cover:
- Trade math (liquidation, PnL, TP/SL)
- Validation gates
- Serialization and cost estimates
- Transaction building and submission
- Position and pending order listing
"""

import asyncio

import pytest

from avantis_client.exceptions import (
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
from avantis_client.models import MarginUpdateType, OrderType, TradeIntent, TradeStatus
from avantis_client.trade_engine import (
    TradeEngine,
    calculate_collateral,
    calculate_liquidation_price,
    calculate_pnl,
    calculate_pnl_percentage,
    calculate_position_size,
    calculate_tp_sl_prices,
)
from avantis_client.utils import to_price_units, to_usdc_units

from conftest import BTC_FEED, ETH_FEED, FakeSigner


@pytest.fixture
def engine(directory, fee_engine, contracts, addresses, price_source, signer) -> TradeEngine:
    return TradeEngine(
        directory, fee_engine, contracts, addresses, price_source=price_source, signer=signer
    )


def make_intent(trader, **overrides) -> TradeIntent:
    params = dict(
        trader=trader,
        pair_index=0,
        position_size=1000.0,
        leverage=10,
        is_long=True,
        open_price=0.0,
        tp=0.0,
        sl=0.0,
        slippage_bps=50,
    )
    params.update(overrides)
    return TradeIntent(**params)


def raw_position(trader, pair_index=0, index=0, open_price=40000.0, is_long=True, margin_fee=1.0):
    return {
        "trade": {
            "trader": trader,
            "pairIndex": pair_index,
            "index": index,
            "initialPosToken": 0,
            "positionSizeUSDC": to_usdc_units(1000),
            "openPrice": to_price_units(open_price),
            "buy": is_long,
            "leverage": 10,
            "tp": to_price_units(60000),
            "sl": 0,
            "timestamp": 1700000000,
        },
        "tradeInfo": {"lossProtectionTier": 1},
        "marginFee": to_usdc_units(margin_fee),
    }


def raw_order(trader, pair_index=1, index=0, price=1900.0):
    return {
        "order": {
            "trader": trader,
            "pairIndex": pair_index,
            "index": index,
            "positionSize": to_usdc_units(500),
            "leverage": 5,
            "price": to_price_units(price),
            "buy": True,
            "tp": 0,
            "sl": 0,
            "slippageP": to_price_units(1),
            "block": 123,
        }
    }


class TestTradeMath:
    """Test pure trade calculations."""

    def test_collateral_and_size(self):
        assert calculate_collateral(1000, 10) == 100
        assert calculate_position_size(100, 10) == 1000
        with pytest.raises(ValueError):
            calculate_collateral(1000, 0)

    def test_liquidation_price_direction(self):
        long_liq = calculate_liquidation_price(2000, 10, True)
        short_liq = calculate_liquidation_price(2000, 10, False)

        assert long_liq < 2000
        assert short_liq > 2000
        assert long_liq == pytest.approx(1820)
        assert short_liq == pytest.approx(2180)

    def test_margin_fees_bring_liquidation_closer(self):
        assert calculate_liquidation_price(2000, 10, True, 1.0) == pytest.approx(1822)
        assert calculate_liquidation_price(2000, 10, False, 1.0) == pytest.approx(2178)

    def test_pnl(self):
        assert calculate_pnl(2000, 2200, 1000, True) == pytest.approx(100)
        assert calculate_pnl(2000, 2200, 1000, False) == pytest.approx(-100)
        assert calculate_pnl(2000, 2200, 1000, True, fees=5) == pytest.approx(95)
        assert calculate_pnl_percentage(2000, 2200, 10, True) == pytest.approx(100)

    def test_tp_sl_prices(self):
        assert calculate_tp_sl_prices(3500, True, 1.0, 0.5) == pytest.approx((3535.0, 3482.5))
        assert calculate_tp_sl_prices(3500, False, 1.0, 0.5) == pytest.approx((3465.0, 3517.5))
        assert calculate_tp_sl_prices(3500, True, None, 0.5)[0] == 0.0

    def test_tp_sl_rejects_bad_input(self):
        with pytest.raises(ValueError, match="Entry price must be positive"):
            calculate_tp_sl_prices(-1, True, 1.0, 0.5)
        with pytest.raises(ValueError, match="TP percent must be positive"):
            calculate_tp_sl_prices(3500, True, -1.0, 0.5)
        with pytest.raises(ValueError, match="at or below zero"):
            calculate_tp_sl_prices(3500, True, None, 100)


class TestValidation:
    """Test the validation gate."""

    def test_valid_market_intent(self, engine, trader):
        engine.validate(make_intent(trader))

    def test_leverage_below_minimum(self, engine, trader):
        with pytest.raises(InvalidLeverage) as exc_info:
            engine.validate(make_intent(trader, leverage=1))

        assert exc_info.value.field == "leverage"
        assert exc_info.value.value == 1

    def test_fractional_leverage(self, engine, trader):
        with pytest.raises(InvalidLeverage, match="whole number") as exc_info:
            engine.validate(make_intent(trader, leverage=12.5))

        assert exc_info.value.value == 12.5

    def test_whole_float_leverage_is_accepted(self, engine, trader):
        engine.validate(make_intent(trader, leverage=12.0))

    def test_zero_size(self, engine, trader):
        with pytest.raises(InvalidCollateral):
            engine.validate(make_intent(trader, position_size=0))

    def test_zero_leverage_has_no_collateral(self, engine, trader):
        with pytest.raises(InvalidCollateral):
            engine.validate(make_intent(trader, leverage=0))

    def test_long_tp_below_entry(self, engine, trader):
        with pytest.raises(InvalidTpSl) as exc_info:
            engine.validate(make_intent(trader, open_price=100, tp=90))
        assert exc_info.value.field == "tp"

    def test_short_sl_below_entry(self, engine, trader):
        with pytest.raises(InvalidTpSl) as exc_info:
            engine.validate(make_intent(trader, is_long=False, open_price=100, sl=90))
        assert exc_info.value.field == "sl"

    def test_valid_limit_tp_sl(self, engine, trader):
        engine.validate(make_intent(trader, open_price=100, tp=120, sl=90))
        engine.validate(make_intent(trader, is_long=False, open_price=100, tp=80, sl=110))

    def test_tp_sl_ignored_for_market_orders(self, engine, trader):
        engine.validate(make_intent(trader, tp=90, sl=120))

    def test_slippage_out_of_range(self, engine, trader):
        with pytest.raises(InvalidSlippage):
            engine.validate(make_intent(trader, slippage_bps=10001))
        with pytest.raises(InvalidSlippage):
            engine.validate(make_intent(trader, slippage_bps=-1))

    def test_invalid_trader(self, engine):
        with pytest.raises(InvalidAddress) as exc_info:
            engine.validate(make_intent("0xnope"))
        assert exc_info.value.field == "trader"

    def test_negative_indexes(self, engine, trader):
        with pytest.raises(InvalidIndex):
            engine.validate(make_intent(trader, pair_index=-1))
        with pytest.raises(InvalidIndex):
            engine.validate(make_intent(trader, index=-1))

    def test_address_checked_first(self, engine):
        with pytest.raises(InvalidAddress):
            engine.validate(make_intent("bad", leverage=1, slippage_bps=99999))

    @pytest.mark.asyncio
    async def test_instrument_leverage_bounds(self, engine, directory, trader):
        eth = await directory.get("ETH/USD")

        with pytest.raises(InvalidLeverage):
            engine.validate(make_intent(trader, pair_index=1, leverage=300), eth)

    def test_validation_errors_are_value_errors(self, engine, trader):
        with pytest.raises(ValueError):
            engine.validate(make_intent(trader, leverage=1))
        assert issubclass(InvalidLeverage, TradeValidationError)


class TestSerialization:
    """Test conversion to contract units."""

    def test_serialize(self, engine, trader):
        serialized = engine.serialize(make_intent(trader, open_price=2000, tp=2500.5, sl=1900))

        assert serialized.position_size_usdc == 1_000_000_000
        assert serialized.open_price == 20_000_000_000_000
        assert serialized.tp == 25_005_000_000_000
        assert serialized.sl == 19_000_000_000_000
        assert serialized.leverage == 10
        assert serialized.buy is True
        assert serialized.initial_pos_token == 0

    def test_serialize_refuses_to_truncate_leverage(self, engine, trader):
        with pytest.raises(InvalidLeverage):
            engine.serialize(make_intent(trader, leverage=12.5))

    @pytest.mark.asyncio
    async def test_fractional_leverage_never_reaches_the_contract(self, engine, trader):
        intent = make_intent(trader, leverage=12.5)

        with pytest.raises(InvalidLeverage):
            await engine.build_open_tx(intent)


class TestEstimates:
    """Test cost and liquidation estimates."""

    @pytest.mark.asyncio
    async def test_calculate_cost(self, engine, trader):
        cost = await engine.calculate_cost(make_intent(trader))

        assert cost.collateral == pytest.approx(100)
        assert cost.opening_fee == pytest.approx(0.8)
        assert cost.execution_fee == pytest.approx(0.00035)
        assert cost.total == pytest.approx(100.8)

    @pytest.mark.asyncio
    async def test_execution_fee_fallback(self, engine, chain_reader):
        chain_reader.responses["executionFee"] = RuntimeError("reverted")

        assert await engine.execution_fee() == 350_000_000_000_000

    @pytest.mark.asyncio
    async def test_liquidation_for_market_intent_uses_live_price(self, engine, trader):
        liquidation = await engine.estimate_liquidation_price(make_intent(trader))

        # 2 bps/hour over 24 hours
        threshold = 0.9 - (2 * 24 / 10000) / 100
        assert liquidation == pytest.approx(50000 - threshold / 10 * 50000)

    @pytest.mark.asyncio
    async def test_liquidation_for_limit_intent(self, engine, trader, price_source):
        price_source.failing.add(BTC_FEED)

        liquidation = await engine.estimate_liquidation_price(
            make_intent(trader, is_long=False, open_price=2000)
        )
        assert liquidation > 2000

    @pytest.mark.asyncio
    async def test_liquidation_propagates_margin_fee_failure(self, engine, chain_reader, trader):
        chain_reader.responses["pairBaseFeeParameter"] = RuntimeError("rpc down")
        chain_reader.responses[("pairBaseFeeParameter", (0,))] = RuntimeError("rpc down")

        with pytest.raises(RuntimeError):
            await engine.estimate_liquidation_price(make_intent(trader, open_price=2000))

    @pytest.mark.asyncio
    async def test_current_price(self, engine):
        assert await engine.current_price("ETH/USD") == 2000
        assert await engine.current_price(0) == 50000

    @pytest.mark.asyncio
    async def test_current_price_without_source(self, directory, fee_engine, contracts, addresses):
        engine = TradeEngine(directory, fee_engine, contracts, addresses)

        with pytest.raises(PriceFeedError):
            await engine.current_price("BTC/USD")

        with pytest.raises(InstrumentNotFound):
            await engine.current_price("DOGE/USD")


class TestTransactionBuilding:
    """Test transaction builders."""

    @pytest.mark.asyncio
    async def test_build_open_tx(self, engine, addresses, price_source, trader):
        intent = make_intent(trader, order_type=OrderType.MARKET)

        tx = await engine.build_open_tx(intent)

        assert tx.to == addresses.trading
        assert tx.call.function == "openTrade"
        assert tx.value == 350_000_000_000_000 + 1
        trade_tuple, order_type, slippage, proof = tx.call.args
        assert trade_tuple == engine.serialize(intent).as_tuple()
        assert order_type == 0
        assert slippage == 50
        assert proof == ("0xproof",)
        assert price_source.update_requests == [[BTC_FEED]]

    @pytest.mark.asyncio
    async def test_missing_proof_is_fatal(self, engine, price_source, trader):
        price_source.update_error = PriceFeedError("hermes down")

        with pytest.raises(PriceFeedError):
            await engine.build_open_tx(make_intent(trader))

    @pytest.mark.asyncio
    async def test_no_price_source_is_fatal(self, directory, fee_engine, contracts, addresses, trader):
        engine = TradeEngine(directory, fee_engine, contracts, addresses)

        with pytest.raises(PriceFeedError):
            await engine.build_open_tx(make_intent(trader))

    @pytest.mark.asyncio
    async def test_unknown_pair(self, engine, trader):
        with pytest.raises(InstrumentNotFound):
            await engine.build_open_tx(make_intent(trader, pair_index=9))

    @pytest.mark.asyncio
    async def test_instrument_bounds_checked_on_build(self, engine, trader):
        with pytest.raises(InvalidLeverage):
            await engine.build_open_tx(make_intent(trader, pair_index=2, leverage=5))

    @pytest.mark.asyncio
    async def test_build_close_tx(self, engine, price_source):
        tx = await engine.build_close_tx(1, 2)

        assert tx.call.function == "closeTradeMarket"
        assert tx.call.args == (1, 2, ("0xproof",))
        assert tx.value == 1
        assert price_source.update_requests == [[ETH_FEED]]

    @pytest.mark.asyncio
    async def test_build_update_txs(self, engine):
        tp = await engine.build_update_tp_tx(0, 1, 2500.5)
        sl = await engine.build_update_sl_tx(0, 1, 1900)
        margin = await engine.build_update_margin_tx(0, 1, -50, MarginUpdateType.WITHDRAW)
        cancel = await engine.build_cancel_limit_order_tx(0, 1)

        assert tp.call.args == (0, 1, 25_005_000_000_000)
        assert sl.call.function == "updateSl"
        assert margin.call.args == (0, 1, 50_000_000, 1)
        assert cancel.call.function == "cancelOpenLimitOrder"
        assert tp.value == 0

    @pytest.mark.asyncio
    async def test_builders_reject_negative_indexes(self, engine):
        with pytest.raises(InvalidIndex):
            await engine.build_update_tp_tx(-1, 0, 100)
        with pytest.raises(InvalidIndex):
            await engine.build_close_tx(0, -1)


class TestSubmission:
    """Test submitting through the signer."""

    @pytest.mark.asyncio
    async def test_open_trade_confirmed(self, engine, signer, trader):
        ticket = await engine.open_trade(make_intent(trader))

        assert ticket.status is TradeStatus.CONFIRMED
        assert ticket.tx_hash is not None
        assert ticket.receipt.success
        assert ticket.serialized is not None
        assert len(signer.sent) == 1
        assert ticket.to_dict()["status"] == "confirmed"

    @pytest.mark.asyncio
    async def test_open_trade_reverted(self, engine, trader):
        engine.set_signer(FakeSigner(success=False))

        ticket = await engine.open_trade(make_intent(trader))

        assert ticket.status is TradeStatus.REVERTED
        assert ticket.error == "Transaction reverted"

    @pytest.mark.asyncio
    async def test_open_trade_proof_failure_sends_nothing(self, engine, signer, price_source, trader):
        price_source.update_error = PriceFeedError("hermes down")

        ticket = await engine.open_trade(make_intent(trader))

        assert ticket.status is TradeStatus.FAILED
        assert "hermes down" in ticket.error
        assert ticket.transaction is None
        assert signer.sent == []

    @pytest.mark.asyncio
    async def test_open_trade_send_failure(self, engine, signer, trader):
        signer.send_error = ConnectionError("nonce too low")

        ticket = await engine.open_trade(make_intent(trader))

        assert ticket.status is TradeStatus.FAILED
        assert ticket.transaction is not None
        assert ticket.tx_hash is None

    @pytest.mark.asyncio
    async def test_open_trade_receipt_timeout_keeps_hash(self, engine, signer, trader):
        signer.receipt_error = asyncio.TimeoutError()

        ticket = await engine.open_trade(make_intent(trader))

        assert len(signer.sent) == 1
        assert ticket.status is TradeStatus.SUBMITTED
        assert ticket.tx_hash == f"0x{1:064x}"
        assert ticket.receipt is None
        assert "Receipt unavailable" in ticket.error

    @pytest.mark.asyncio
    async def test_open_trade_validation_raises(self, engine, signer, trader):
        with pytest.raises(InvalidLeverage):
            await engine.open_trade(make_intent(trader, leverage=1))
        assert signer.sent == []

    @pytest.mark.asyncio
    async def test_open_trade_requires_signer(self, engine, trader):
        engine.set_signer(None)

        with pytest.raises(MissingSigner):
            await engine.open_trade(make_intent(trader))

    @pytest.mark.asyncio
    async def test_close_and_update(self, engine, signer):
        receipt = await engine.close_trade(0, 1)
        await engine.update_tp(0, 1, 60000)
        await engine.update_sl(0, 1, 30000)
        await engine.update_margin(0, 1, 25, MarginUpdateType.DEPOSIT)
        await engine.cancel_limit_order(1, 0)

        assert receipt.success
        assert [tx.call.function for tx in signer.sent] == [
            "closeTradeMarket", "updateTp", "updateSl", "updateMargin", "cancelOpenLimitOrder",
        ]

    @pytest.mark.asyncio
    async def test_close_requires_signer(self, engine):
        engine.set_signer(None)

        with pytest.raises(MissingSigner):
            await engine.close_trade(0, 1)


class TestPositions:
    """Test open position and pending order listing."""

    @pytest.mark.asyncio
    async def test_list_open_positions(self, engine, chain_reader, trader):
        chain_reader.responses["getPositions"] = ([raw_position(trader)], [])

        positions = await engine.list_open_positions()

        assert chain_reader.called("getPositions") == [(trader,)]
        position = positions[0]
        assert position.pair_name == "BTC/USD"
        assert position.id == f"{trader}-0-0"
        assert position.collateral == pytest.approx(100)
        assert position.current_price == 50000
        assert position.unrealized_pnl == pytest.approx(1000 * 0.25 - 1)
        assert position.unrealized_pnl_percentage == pytest.approx(250)
        assert position.liquidation_price == pytest.approx(40000 - 0.89 / 10 * 40000)
        assert position.tp == pytest.approx(60000)
        assert position.loss_protection_tier == 1

    @pytest.mark.asyncio
    async def test_price_failure_falls_back_to_entry(self, engine, chain_reader, price_source, trader):
        price_source.failing.add(ETH_FEED)
        chain_reader.responses["getPositions"] = (
            [raw_position(trader), raw_position(trader, pair_index=1, open_price=2100)],
            [],
        )

        positions = await engine.list_open_positions(trader)

        assert positions[0].current_price == 50000
        assert positions[1].current_price == pytest.approx(2100)
        assert positions[1].unrealized_pnl == pytest.approx(-1)

    @pytest.mark.asyncio
    async def test_unknown_pair_keeps_position(self, engine, chain_reader, trader):
        chain_reader.responses["getPositions"] = ([raw_position(trader, pair_index=7)], [])

        positions = await engine.list_open_positions(trader)

        assert positions[0].pair_name == "Pair 7"
        assert positions[0].current_price == pytest.approx(40000)

    @pytest.mark.asyncio
    async def test_positions_read_failure_propagates(self, engine, chain_reader, trader):
        chain_reader.responses["getPositions"] = RuntimeError("multicall reverted")

        with pytest.raises(RuntimeError):
            await engine.list_open_positions(trader)

    @pytest.mark.asyncio
    async def test_requires_trader_or_signer(self, engine):
        engine.set_signer(None)

        with pytest.raises(MissingSigner):
            await engine.list_open_positions()

    @pytest.mark.asyncio
    async def test_list_pending_orders(self, engine, chain_reader, trader):
        chain_reader.responses["getPositions"] = ([], [raw_order(trader)])

        orders = await engine.list_pending_orders(trader)

        order = orders[0]
        assert order.pair_name == "ETH/USD"
        assert order.id == f"{trader}-1-0-limit"
        assert order.limit_price == pytest.approx(1900)
        assert order.position_size == pytest.approx(500)
        assert order.slippage_percentage == pytest.approx(1)
        assert order.distance_to_limit_percentage == pytest.approx(5)

    @pytest.mark.asyncio
    async def test_get_position(self, engine, chain_reader, trader):
        chain_reader.responses["getPositions"] = (
            [raw_position(trader, index=0), raw_position(trader, index=3)],
            [],
        )

        position = await engine.get_position(0, 3, trader)

        assert position.index == 3
        assert await engine.get_position(1, 0, trader) is None


class TestMarketReads:
    """Test the all-pairs ratio and rollover reads."""

    @pytest.mark.asyncio
    async def test_long_short_ratios(self, engine, chain_reader):
        chain_reader.responses["getLongShortRatios"] = ([6000, 5000], [4000, 5000])

        ratios = await engine.get_long_short_ratios()

        assert ratios[0].long == pytest.approx(60)
        assert ratios[0].short == pytest.approx(40)
        assert ratios[1].long == pytest.approx(50)
        assert len(ratios) == 2

    @pytest.mark.asyncio
    async def test_margin_info(self, engine, chain_reader, addresses):
        chain_reader.responses["getMargins"] = ([10, 20], [11, 21], [9, 19])

        margins = await engine.get_margin_info()

        assert margins[1].base == 20
        assert margins[1].long == 21
        assert margins[1].short == 19
        assert chain_reader.calls[-1][0] == addresses.multicall

    @pytest.mark.asyncio
    async def test_ratio_read_failure_propagates(self, engine, chain_reader):
        chain_reader.responses["getLongShortRatios"] = RuntimeError("multicall reverted")

        with pytest.raises(RuntimeError):
            await engine.get_long_short_ratios()


class TestUsdc:
    """Test USDC balance, allowance and approval."""

    @pytest.mark.asyncio
    async def test_balance_defaults_to_signer(self, engine, chain_reader, addresses, trader):
        chain_reader.responses[("balanceOf", (trader,))] = 1_234_560_000

        balance = await engine.get_usdc_balance()

        assert balance == pytest.approx(1234.56)
        assert chain_reader.calls[-1][0] == addresses.usdc

    @pytest.mark.asyncio
    async def test_balance_without_address_or_signer(self, engine):
        engine.set_signer(None)

        with pytest.raises(MissingSigner):
            await engine.get_usdc_balance()

    @pytest.mark.asyncio
    async def test_allowance_targets_trading_storage(self, engine, chain_reader, addresses, referrer):
        chain_reader.responses[("allowance", (referrer, addresses.trading_storage))] = 5_000_000

        assert await engine.get_usdc_allowance_for_trading(referrer) == pytest.approx(5)

    def test_build_approve_tx(self, engine, addresses):
        tx = engine.build_approve_usdc_tx(250)

        assert tx.to == addresses.usdc
        assert tx.call.function == "approve"
        assert tx.call.args == (addresses.trading_storage, 250_000_000)
        assert tx.value == 0

    def test_default_approval_amount(self, engine):
        tx = engine.build_approve_usdc_tx()

        assert tx.call.args[1] == to_usdc_units(100_000)

    def test_negative_approval(self, engine):
        with pytest.raises(InvalidCollateral):
            engine.build_approve_usdc_tx(-1)

    @pytest.mark.asyncio
    async def test_approve_submits(self, engine, signer):
        receipt = await engine.approve_usdc_for_trading(10)

        assert receipt.success
        assert signer.sent[0].call.function == "approve"

    @pytest.mark.asyncio
    async def test_approve_requires_signer(self, engine):
        engine.set_signer(None)

        with pytest.raises(MissingSigner):
            await engine.approve_usdc_for_trading()
