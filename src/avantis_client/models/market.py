"""
Market data models for Avantis client.

Immutable structures describing pairs (instruments), groups (categories)
and the per-pair figures derived from them.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class OpenInterest:
    """Long/short open interest in USDC."""
    long: float = 0.0
    short: float = 0.0

    @property
    def total(self) -> float:
        return self.long + self.short


@dataclass(frozen=True)
class Fee:
    """A per-direction figure, usually basis points."""
    long: float = 0.0
    short: float = 0.0


@dataclass(frozen=True)
class Depth:
    """One percent depth estimate in USDC."""
    above: float = 0.0
    below: float = 0.0


@dataclass(frozen=True)
class MarginFee:
    """Margin (borrowing) fee parameters for a pair."""
    hourly_base_fee_parameter: float = 0.0
    long_bps: float = 0.0
    short_bps: float = 0.0

    def bps_for(self, is_long: bool) -> float:
        """Hourly rate for the given direction."""
        return self.long_bps if is_long else self.short_bps


@dataclass(frozen=True)
class LongShortRatio:
    """Share of a pair's open interest on each side, in percent."""
    long: float = 0.0
    short: float = 0.0


@dataclass(frozen=True)
class RolloverFee:
    """Per-block rollover fee rates read from the multicall contract."""
    base: float = 0.0
    long: float = 0.0
    short: float = 0.0


@dataclass(frozen=True)
class PairSpread:
    """Static spread of a pair in basis points."""
    pair_index: int
    spread_bps: float


@dataclass(frozen=True)
class Instrument:
    """
    A tradeable pair.

    Attributes:
        index: Contract-assigned pair index
        name: Display name, e.g. "BTC/USD"
        group_index: Index of the owning category
        spread_bps: Static spread in basis points
        long_oi: Long open interest in USDC
        short_oi: Short open interest in USDC
        oi_limit: Open interest limit in USDC
    """
    index: int
    name: str
    group_index: int
    min_leverage: float
    max_leverage: float
    spread_bps: float = 0.0
    price_impact_multiplier: float = 0.0
    skew_impact_multiplier: float = 0.0
    feed_id: str = ""
    backup_feed_id: str = ""
    max_open_deviation: float = 0.0
    fee_index: int = 0
    max_gain_percentage: float = 0.0
    max_sl_percentage: float = 0.0
    max_oi_percentage: float = 0.0
    usdc_aligned: bool = True
    long_oi: float = 0.0
    short_oi: float = 0.0
    oi_limit: float = 0.0
    tier_thresholds: Tuple[float, ...] = ()
    tier_timers: Tuple[float, ...] = ()

    def __post_init__(self):
        """Validate instrument parameters."""
        if self.index < 0:
            raise ValueError(f"Pair index cannot be negative, got {self.index}")
        if not self.name:
            raise ValueError("Pair name cannot be empty")
        if self.min_leverage <= 0:
            raise ValueError(
                f"Min leverage must be positive for {self.name}, got {self.min_leverage}"
            )
        if self.max_leverage < self.min_leverage:
            raise ValueError(
                f"Max leverage {self.max_leverage} below min leverage "
                f"{self.min_leverage} for {self.name}"
            )
        for attr in ("spread_bps", "price_impact_multiplier", "skew_impact_multiplier",
                     "long_oi", "short_oi", "oi_limit"):
            if getattr(self, attr) < 0:
                raise ValueError(f"{attr} cannot be negative for {self.name}")

    @property
    def total_oi(self) -> float:
        return self.long_oi + self.short_oi

    @property
    def open_interest(self) -> OpenInterest:
        return OpenInterest(long=self.long_oi, short=self.short_oi)

    @property
    def base(self) -> str:
        return self.name.split("/")[0]

    @property
    def quote(self) -> str:
        parts = self.name.split("/")
        return parts[1] if len(parts) > 1 else ""


@dataclass(frozen=True)
class Category:
    """A group of pairs sharing aggregate risk limits."""
    index: int
    name: str
    oi_limit: float = 0.0
    current_oi: float = 0.0  # As reported by the listing, not derived
    max_oi_percentage: float = 0.0
    is_spread_dynamic: bool = False


@dataclass(frozen=True)
class PairListing:
    """Raw result of a pair source fetch."""
    instruments: Tuple[Instrument, ...]
    categories: Mapping[int, Category]


@dataclass(frozen=True)
class DirectorySnapshot:
    """
    Point-in-time view of the pair directory.

    Built completely before it is published, never mutated afterwards.
    """
    instruments: Mapping[int, Instrument]
    by_name: Mapping[str, int]
    categories: Mapping[int, Category]
    fetched_at: float

    @classmethod
    def build(cls, listing: PairListing, fetched_at: float) -> "DirectorySnapshot":
        """Index a listing by pair index and upper-cased name."""
        instruments: Dict[int, Instrument] = {}
        by_name: Dict[str, int] = {}
        for instrument in listing.instruments:
            instruments[instrument.index] = instrument
            by_name[instrument.name.upper()] = instrument.index

        return cls(
            instruments=MappingProxyType(instruments),
            by_name=MappingProxyType(by_name),
            categories=MappingProxyType(dict(listing.categories)),
            fetched_at=fetched_at,
        )

    def find(self, name: str) -> Optional[Instrument]:
        index = self.by_name.get(name.upper())
        if index is None:
            return None
        return self.instruments.get(index)

    @property
    def group_indexes(self) -> Tuple[int, ...]:
        indexes = set(self.categories)
        indexes.update(i.group_index for i in self.instruments.values())
        return tuple(sorted(indexes))
