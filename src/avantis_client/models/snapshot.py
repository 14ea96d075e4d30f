"""
Snapshot models for Avantis client.
"""

from dataclasses import dataclass, field
from typing import Dict

from .market import Depth, Fee, Instrument, MarginFee, OpenInterest


@dataclass(frozen=True)
class PairSnapshot:
    """A pair with every derived figure attached."""
    instrument: Instrument
    asset_oi: OpenInterest
    asset_utilization: float
    asset_skew: float
    margin_fee: MarginFee
    depth: Depth
    price_impact_spread: Fee
    skew_impact_spread: Fee
    opening_fee: Fee
    pair_spread: float


@dataclass
class SnapshotGroup:
    """A category with its member pairs keyed by name."""
    group_index: int
    name: str
    oi_limit: float
    open_interest: OpenInterest
    utilization: float
    skew: float
    pairs: Dict[str, PairSnapshot] = field(default_factory=dict)


@dataclass
class Snapshot:
    groups: Dict[int, SnapshotGroup]
    fetched_at: float

    def pair(self, name: str) -> PairSnapshot:
        """Find a pair snapshot by name (case-insensitive)."""
        wanted = name.upper()
        for group in self.groups.values():
            for pair_name, pair in group.pairs.items():
                if pair_name.upper() == wanted:
                    return pair
        raise KeyError(name)


@dataclass(frozen=True)
class OiSkew:
    open_interest: OpenInterest
    skew: float


@dataclass
class SimplifiedSnapshot:
    pairs: Dict[str, OiSkew]
    groups: Dict[int, OiSkew]
