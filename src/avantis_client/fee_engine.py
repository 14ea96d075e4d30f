"""
Fee parameters: margin (borrowing) fees, opening/closing fees and
referral rebates.

Margin and opening/closing fee reads are required and propagate failures.
Referral lookups are best-effort and degrade to no rebate.
"""

import asyncio
import logging
from typing import Dict, Optional

from .chain import ContractReader
from .constants import DEFAULT_TEST_POSITION_SIZE, REFERRAL_REBATE_BY_TIER, ZERO_ADDRESS
from .models.config import ContractAddresses
from .models.market import Fee, MarginFee, PairSpread
from .models.trade import TradeIntent
from .pair_directory import PairDirectory, PairLike
from .utils import calculate_fee_usdc, to_usdc_units

logger = logging.getLogger(__name__)


class FeeEngine:
    """Reads and combines protocol fee parameters."""

    def __init__(
        self,
        directory: PairDirectory,
        contracts: ContractReader,
        addresses: ContractAddresses,
    ):
        self._directory = directory
        self._contracts = contracts
        self._addresses = addresses

    # Margin fees
    async def _read_margin_fee(self, pair_index: int) -> MarginFee:
        borrowing_fees = self._addresses.borrowing_fees
        base_fee, long_fee, short_fee = await asyncio.gather(
            self._contracts.read(borrowing_fees, "pairBaseFeeParameter", pair_index),
            self._contracts.read(borrowing_fees, "pairHourlyBorrowingFee", pair_index, True),
            self._contracts.read(borrowing_fees, "pairHourlyBorrowingFee", pair_index, False),
        )
        return MarginFee(
            hourly_base_fee_parameter=float(base_fee),
            long_bps=float(long_fee),
            short_bps=float(short_fee),
        )

    async def margin_fee(self, pair: PairLike) -> MarginFee:
        """Base fee parameter and hourly long/short rates for one pair."""
        instrument = await self._directory.get(pair)
        return await self._read_margin_fee(instrument.index)

    async def all_margin_fees(self) -> Dict[int, MarginFee]:
        snapshot = await self._directory.refresh()
        indexes = sorted(snapshot.instruments)
        fees = await asyncio.gather(*(self._read_margin_fee(i) for i in indexes))
        return dict(zip(indexes, fees))

    # Spreads
    async def pair_spread(self, pair: PairLike) -> PairSpread:
        instrument = await self._directory.get(pair)
        return PairSpread(pair_index=instrument.index, spread_bps=instrument.spread_bps)

    async def all_pair_spreads(self) -> Dict[int, PairSpread]:
        snapshot = await self._directory.refresh()
        return {
            index: PairSpread(pair_index=index, spread_bps=instrument.spread_bps)
            for index, instrument in snapshot.instruments.items()
        }

    # Opening / closing fees
    async def _read_opening_fee_bps(self, pair_index: int, position_size: float, is_long: bool) -> float:
        fee = await self._contracts.read(
            self._addresses.trading_callbacks,
            "getOpeningFee",
            pair_index,
            to_usdc_units(position_size),
            is_long,
        )
        return float(fee)

    async def opening_fee_bps(
        self,
        pair: PairLike,
        position_size: float = DEFAULT_TEST_POSITION_SIZE,
        is_long: bool = True,
    ) -> float:
        instrument = await self._directory.get(pair)
        return await self._read_opening_fee_bps(instrument.index, position_size, is_long)

    async def opening_fees(
        self,
        pair: PairLike,
        position_size: float = DEFAULT_TEST_POSITION_SIZE,
    ) -> Fee:
        """Opening fee in basis points for both directions."""
        instrument = await self._directory.get(pair)
        long_fee, short_fee = await asyncio.gather(
            self._read_opening_fee_bps(instrument.index, position_size, True),
            self._read_opening_fee_bps(instrument.index, position_size, False),
        )
        return Fee(long=long_fee, short=short_fee)

    async def opening_fee_usdc(self, intent: TradeIntent) -> float:
        """Opening fee in USDC for a trade intent, net of the referral rebate."""
        fee_bps = await self._read_opening_fee_bps(
            intent.pair_index, intent.position_size, intent.is_long
        )
        base_fee = calculate_fee_usdc(intent.position_size, fee_bps)

        rebate_percentage = await self.referral_rebate_percentage(intent.trader)
        rebate = base_fee * rebate_percentage / 100
        return base_fee - rebate

    async def closing_fee_bps(self, pair: PairLike, position_size: float, is_long: bool) -> float:
        instrument = await self._directory.get(pair)
        fee = await self._contracts.read(
            self._addresses.trading_callbacks,
            "getClosingFee",
            instrument.index,
            to_usdc_units(position_size),
            is_long,
        )
        return float(fee)

    # Referrals
    async def referrer_of(self, trader: str) -> Optional[str]:
        """Referrer of a trader, or None if unset or unreadable."""
        referrer = await self._contracts.read(
            self._addresses.referral, "referrerByTrader", trader, fallback=None
        )
        if not referrer or str(referrer).lower() == ZERO_ADDRESS:
            return None
        return str(referrer)

    async def referral_rebate_percentage(self, trader: str) -> float:
        """Rebate percentage from the referrer's tier; 0 on any failure."""
        referrer = await self.referrer_of(trader)
        if referrer is None:
            return 0.0

        tier = await self._contracts.read(
            self._addresses.referral, "referralTiers", referrer, fallback=None
        )
        if tier is None:
            return 0.0

        try:
            return REFERRAL_REBATE_BY_TIER.get(int(tier), 0.0)
        except (TypeError, ValueError):
            logger.debug(f"Unreadable referral tier {tier!r} for {referrer}")
            return 0.0
