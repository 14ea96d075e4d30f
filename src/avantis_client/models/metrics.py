"""
Blended metric models for Avantis client.
"""

from dataclasses import dataclass
from enum import Enum

from ..constants import DEFAULT_ASSET_WEIGHT, DEFAULT_CATEGORY_WEIGHT, WEIGHT_SUM_TOLERANCE
from ..exceptions import InvalidConfiguration
from .market import OpenInterest


@dataclass(frozen=True)
class BlendWeights:
    """Asset/category weights used for blending. Must sum to 1."""
    asset_weight: float = DEFAULT_ASSET_WEIGHT
    category_weight: float = DEFAULT_CATEGORY_WEIGHT

    def __post_init__(self):
        total = self.asset_weight + self.category_weight
        # Rejects NaN as well
        if not abs(total - 1) <= WEIGHT_SUM_TOLERANCE:
            raise InvalidConfiguration(f"Weights must sum to 1. Got: {total}")

    def blend(self, asset_value: float, category_value: float) -> float:
        return asset_value * self.asset_weight + category_value * self.category_weight


@dataclass(frozen=True)
class BlendedUtilization:
    asset_utilization: float
    category_utilization: float
    blended_utilization: float
    asset_weight: float
    category_weight: float


@dataclass(frozen=True)
class BlendedSkew:
    asset_skew: float
    category_skew: float
    blended_skew: float
    asset_weight: float
    category_weight: float


@dataclass(frozen=True)
class BlendedMetrics:
    """Blended utilization and skew for one pair."""
    pair_index: int
    pair_name: str
    group_index: int
    asset_oi: OpenInterest
    category_oi: OpenInterest
    utilization: BlendedUtilization
    skew: BlendedSkew


class BiasDirection(Enum):
    """Directional bias enumeration."""
    LONG = "long"
    SHORT = "short"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class DirectionalBias:
    direction: BiasDirection
    strength: float
    skew: BlendedSkew
