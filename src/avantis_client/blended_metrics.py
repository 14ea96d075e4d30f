"""
Blended pair/group metrics.

A pair's blended utilization (or skew) is the weighted sum of its own
figure and its group's figure. Weights live in one immutable BlendWeights
value; ``set_weights`` validates a new value and swaps it in, and every
computation reads the weights exactly once.
"""

import logging
from typing import Dict, Tuple

from .asset_metrics import AssetMetrics
from .category_metrics import aggregate_oi_in, group_skew_in, group_utilization_in
from .constants import BALANCED_SKEW, DIRECTIONAL_BIAS_THRESHOLD
from .models.market import DirectorySnapshot, Instrument
from .models.metrics import (
    BiasDirection,
    BlendWeights,
    BlendedMetrics,
    BlendedSkew,
    BlendedUtilization,
    DirectionalBias,
)
from .pair_directory import PairDirectory, PairLike, find_instrument

logger = logging.getLogger(__name__)


def classify_bias(blended_skew: float) -> Tuple[BiasDirection, float]:
    """Direction and strength of a blended skew around the balanced 50."""
    deviation = blended_skew - BALANCED_SKEW
    strength = abs(deviation)
    if deviation > DIRECTIONAL_BIAS_THRESHOLD:
        return BiasDirection.LONG, strength
    if deviation < -DIRECTIONAL_BIAS_THRESHOLD:
        return BiasDirection.SHORT, strength
    return BiasDirection.NEUTRAL, strength


def bias_from_skew(skew: BlendedSkew) -> DirectionalBias:
    direction, strength = classify_bias(skew.blended_skew)
    return DirectionalBias(direction=direction, strength=strength, skew=skew)


def blend_utilization(asset_util: float, category_util: float, weights: BlendWeights) -> BlendedUtilization:
    return BlendedUtilization(
        asset_utilization=asset_util,
        category_utilization=category_util,
        blended_utilization=weights.blend(asset_util, category_util),
        asset_weight=weights.asset_weight,
        category_weight=weights.category_weight,
    )


def blend_skew(asset_skew: float, category_skew: float, weights: BlendWeights) -> BlendedSkew:
    return BlendedSkew(
        asset_skew=asset_skew,
        category_skew=category_skew,
        blended_skew=weights.blend(asset_skew, category_skew),
        asset_weight=weights.asset_weight,
        category_weight=weights.category_weight,
    )


class BlendedMetricsEngine:
    """Weighted combination of pair and group metrics."""

    def __init__(
        self,
        directory: PairDirectory,
        weights: BlendWeights = BlendWeights(),
    ):
        self._directory = directory
        self._weights = weights

    @property
    def weights(self) -> BlendWeights:
        return self._weights

    def set_weights(self, asset_weight: float, category_weight: float) -> None:
        """
        Replace the blend weights.

        Raises:
            InvalidConfiguration: If the weights do not sum to 1 within 0.001
        """
        self._weights = BlendWeights(asset_weight, category_weight)
        logger.info(f"Blend weights set to asset={asset_weight}, category={category_weight}")

    # Per-snapshot computations
    @staticmethod
    def _utilization(snapshot: DirectorySnapshot, instrument: Instrument,
                     weights: BlendWeights) -> BlendedUtilization:
        return blend_utilization(
            AssetMetrics.utilization_of(instrument),
            group_utilization_in(snapshot, instrument.group_index),
            weights,
        )

    @staticmethod
    def _skew(snapshot: DirectorySnapshot, instrument: Instrument,
              weights: BlendWeights) -> BlendedSkew:
        return blend_skew(
            AssetMetrics.skew_of(instrument),
            group_skew_in(snapshot, instrument.group_index),
            weights,
        )

    def _metrics(self, snapshot: DirectorySnapshot, instrument: Instrument,
                 weights: BlendWeights) -> BlendedMetrics:
        return BlendedMetrics(
            pair_index=instrument.index,
            pair_name=instrument.name,
            group_index=instrument.group_index,
            asset_oi=instrument.open_interest,
            category_oi=aggregate_oi_in(snapshot, instrument.group_index),
            utilization=self._utilization(snapshot, instrument, weights),
            skew=self._skew(snapshot, instrument, weights),
        )

    # Single pair
    async def blended_utilization(self, pair: PairLike) -> BlendedUtilization:
        weights = self._weights
        snapshot = await self._directory.refresh()
        return self._utilization(snapshot, find_instrument(snapshot, pair), weights)

    async def blended_skew(self, pair: PairLike) -> BlendedSkew:
        weights = self._weights
        snapshot = await self._directory.refresh()
        return self._skew(snapshot, find_instrument(snapshot, pair), weights)

    async def blended_metrics(self, pair: PairLike) -> BlendedMetrics:
        weights = self._weights
        snapshot = await self._directory.refresh()
        return self._metrics(snapshot, find_instrument(snapshot, pair), weights)

    async def directional_bias(self, pair: PairLike) -> DirectionalBias:
        return bias_from_skew(await self.blended_skew(pair))

    # All pairs
    async def all_blended_utilization(self) -> Dict[int, BlendedUtilization]:
        weights = self._weights
        snapshot = await self._directory.refresh()
        return {
            index: self._utilization(snapshot, instrument, weights)
            for index, instrument in snapshot.instruments.items()
        }

    async def all_blended_skew(self) -> Dict[int, BlendedSkew]:
        weights = self._weights
        snapshot = await self._directory.refresh()
        return {
            index: self._skew(snapshot, instrument, weights)
            for index, instrument in snapshot.instruments.items()
        }

    async def all_blended_metrics(self) -> Dict[int, BlendedMetrics]:
        weights = self._weights
        snapshot = await self._directory.refresh()
        return {
            index: self._metrics(snapshot, instrument, weights)
            for index, instrument in snapshot.instruments.items()
        }

    async def all_directional_bias(self) -> Dict[int, DirectionalBias]:
        skews = await self.all_blended_skew()
        return {index: bias_from_skew(skew) for index, skew in skews.items()}
