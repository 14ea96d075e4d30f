"""
Per-pair market metrics.

Utilization, skew, spread estimates and depth are pure functions of an
Instrument. The async methods read the current directory snapshot and
apply them.
"""

import math
from typing import Dict

from .constants import BALANCED_SKEW, DEPTH_LIMIT_FRACTION
from .models.market import Depth, Fee, Instrument, OpenInterest
from .pair_directory import PairDirectory, PairLike


def compute_utilization(long_oi: float, short_oi: float, limit: float) -> float:
    """Total OI as a percentage of the limit; 0 when there is no limit."""
    if limit > 0:
        return (long_oi + short_oi) / limit * 100
    return 0.0


def compute_skew(long_oi: float, short_oi: float) -> float:
    """Long share of total OI as a percentage; exactly 50 when there is no OI."""
    total = long_oi + short_oi
    if total > 0:
        return long_oi / total * 100
    return BALANCED_SKEW


def _finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0.0


class AssetMetrics:
    """Pair-level utilization, skew, spreads and depth."""

    def __init__(self, directory: PairDirectory):
        self._directory = directory

    # Pure computations
    @staticmethod
    def utilization_of(instrument: Instrument) -> float:
        return compute_utilization(instrument.long_oi, instrument.short_oi, instrument.oi_limit)

    @staticmethod
    def skew_of(instrument: Instrument) -> float:
        return compute_skew(instrument.long_oi, instrument.short_oi)

    @staticmethod
    def price_impact_spread_of(instrument: Instrument, position_size: float, is_long: bool) -> float:
        """
        Estimated price impact in basis points.

        Same magnitude for both directions; ``is_long`` is accepted so the
        signature matches the skew estimate.
        """
        if instrument.oi_limit <= 0:
            return 0.0
        impact_ratio = position_size / instrument.oi_limit
        return _finite_or_zero(impact_ratio * instrument.price_impact_multiplier * 100)

    @staticmethod
    def skew_impact_spread_of(instrument: Instrument, position_size: float, is_long: bool) -> float:
        """
        Estimated skew impact in basis points.

        Trades on the dominant side pay twice the skew deviation.
        """
        total_oi = instrument.total_oi
        if total_oi <= 0 or instrument.oi_limit <= 0:
            return 0.0

        current_skew = instrument.long_oi / total_oi
        deviation = abs(current_skew - 0.5)
        with_skew = (is_long and current_skew > 0.5) or (not is_long and current_skew < 0.5)
        skew_factor = deviation * 2 if with_skew else deviation

        size_impact = position_size / instrument.oi_limit
        return _finite_or_zero(
            skew_factor * instrument.skew_impact_multiplier * size_impact * 100
        )

    @classmethod
    def opening_spread_of(cls, instrument: Instrument, position_size: float) -> Fee:
        """Price impact plus skew impact for both directions."""
        return Fee(
            long=cls.price_impact_spread_of(instrument, position_size, True)
            + cls.skew_impact_spread_of(instrument, position_size, True),
            short=cls.price_impact_spread_of(instrument, position_size, False)
            + cls.skew_impact_spread_of(instrument, position_size, False),
        )

    @staticmethod
    def depth_of(instrument: Instrument) -> Depth:
        """One percent depth, approximated as 1% of the OI limit per side."""
        estimated = instrument.oi_limit * DEPTH_LIMIT_FRACTION
        return Depth(above=estimated, below=estimated)

    # Directory-backed reads
    async def get_oi(self) -> Dict[int, OpenInterest]:
        snapshot = await self._directory.refresh()
        return {index: i.open_interest for index, i in snapshot.instruments.items()}

    async def get_oi_limits(self) -> Dict[int, float]:
        snapshot = await self._directory.refresh()
        return {index: i.oi_limit for index, i in snapshot.instruments.items()}

    async def get_utilization(self) -> Dict[int, float]:
        snapshot = await self._directory.refresh()
        return {index: self.utilization_of(i) for index, i in snapshot.instruments.items()}

    async def get_skew(self) -> Dict[int, float]:
        snapshot = await self._directory.refresh()
        return {index: self.skew_of(i) for index, i in snapshot.instruments.items()}

    async def pair_oi(self, pair: PairLike) -> OpenInterest:
        instrument = await self._directory.get(pair)
        return instrument.open_interest

    async def pair_oi_limit(self, pair: PairLike) -> float:
        instrument = await self._directory.get(pair)
        return instrument.oi_limit

    async def pair_utilization(self, pair: PairLike) -> float:
        instrument = await self._directory.get(pair)
        return self.utilization_of(instrument)

    async def pair_skew(self, pair: PairLike) -> float:
        instrument = await self._directory.get(pair)
        return self.skew_of(instrument)

    async def price_impact_spread(self, position_size: float, is_long: bool, pair: PairLike) -> float:
        instrument = await self._directory.get(pair)
        return self.price_impact_spread_of(instrument, position_size, is_long)

    async def skew_impact_spread(self, position_size: float, is_long: bool, pair: PairLike) -> float:
        instrument = await self._directory.get(pair)
        return self.skew_impact_spread_of(instrument, position_size, is_long)

    async def combined_opening_spread(self, pair: PairLike, position_size: float) -> Fee:
        instrument = await self._directory.get(pair)
        return self.opening_spread_of(instrument, position_size)

    async def one_percent_depth(self, pair: PairLike) -> Depth:
        instrument = await self._directory.get(pair)
        return self.depth_of(instrument)

    async def all_one_percent_depths(self) -> Dict[int, Depth]:
        snapshot = await self._directory.refresh()
        return {index: self.depth_of(i) for index, i in snapshot.instruments.items()}
