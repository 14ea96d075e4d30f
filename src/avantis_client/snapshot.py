"""
Market snapshot aggregation.

Combines the pair directory, asset and category metrics and fee reads into
one grouped view. Margin fee reads are required; per-pair enrichment
(depth, spreads, opening fee) degrades to zero independently so one failing
pair does not sink the snapshot.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, TypeVar

from .asset_metrics import AssetMetrics
from .category_metrics import (
    CategoryMetrics,
    aggregate_oi_in,
    group_oi_limit_in,
    group_skew_in,
    group_utilization_in,
)
from .constants import DEFAULT_TEST_POSITION_SIZE
from .fee_engine import FeeEngine
from .models.market import Depth, DirectorySnapshot, Fee, Instrument, MarginFee
from .models.snapshot import OiSkew, PairSnapshot, SimplifiedSnapshot, Snapshot, SnapshotGroup
from .pair_directory import PairDirectory

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _degrade(label: str, operation: Callable[[], Awaitable[T]], default: T) -> T:
    """Run ``operation``, returning ``default`` if it raises."""
    try:
        return await operation()
    except Exception as e:
        logger.debug(f"{label} unavailable, using {default}: {e}")
        return default


class SnapshotAggregator:
    """Builds full and simplified market snapshots."""

    def __init__(
        self,
        directory: PairDirectory,
        asset_metrics: AssetMetrics,
        category_metrics: CategoryMetrics,
        fees: FeeEngine,
    ):
        self._directory = directory
        self._asset_metrics = asset_metrics
        self._category_metrics = category_metrics
        self._fees = fees

    async def full_snapshot(self, test_position_size: float = DEFAULT_TEST_POSITION_SIZE) -> Snapshot:
        """
        Snapshot of every pair, grouped by category.

        Args:
            test_position_size: Position size (USDC) used to quote spreads
                and opening fees

        Returns:
            Snapshot with groups keyed by index and pairs keyed by name

        Raises:
            FetchFailed: If the pair directory cannot be refreshed
            Exception: Any margin fee read failure from the chain reader
        """
        directory_snapshot = await self._directory.refresh()
        instruments = [
            directory_snapshot.instruments[index]
            for index in sorted(directory_snapshot.instruments)
        ]

        margin_fees, enrichments = await asyncio.gather(
            self._fees.all_margin_fees(),
            asyncio.gather(*(self._enrich(instrument, test_position_size) for instrument in instruments)),
        )

        groups = self._build_groups(directory_snapshot)
        for instrument, (depth, price_impact, skew_impact, opening_fee) in zip(instruments, enrichments):
            group = groups.get(instrument.group_index)
            if group is None:
                group = self._build_group(directory_snapshot, instrument.group_index)
                groups[instrument.group_index] = group

            group.pairs[instrument.name] = PairSnapshot(
                instrument=instrument,
                asset_oi=instrument.open_interest,
                asset_utilization=self._asset_metrics.utilization_of(instrument),
                asset_skew=self._asset_metrics.skew_of(instrument),
                margin_fee=margin_fees.get(instrument.index, MarginFee(0.0, 0.0, 0.0)),
                depth=depth,
                price_impact_spread=price_impact,
                skew_impact_spread=skew_impact,
                opening_fee=opening_fee,
                pair_spread=instrument.spread_bps,
            )

        logger.info(
            f"Built snapshot of {len(instruments)} pairs in {len(groups)} groups"
        )
        return Snapshot(groups=dict(sorted(groups.items())), fetched_at=directory_snapshot.fetched_at)

    async def _enrich(self, instrument: Instrument, position_size: float):
        """Depth, price impact, skew impact and opening fee for one pair."""
        name = instrument.name

        async def depth() -> Depth:
            return self._asset_metrics.depth_of(instrument)

        async def price_impact() -> Fee:
            return Fee(
                long=self._asset_metrics.price_impact_spread_of(instrument, position_size, True),
                short=self._asset_metrics.price_impact_spread_of(instrument, position_size, False),
            )

        async def skew_impact() -> Fee:
            return Fee(
                long=self._asset_metrics.skew_impact_spread_of(instrument, position_size, True),
                short=self._asset_metrics.skew_impact_spread_of(instrument, position_size, False),
            )

        async def opening_fee() -> Fee:
            return await self._fees.opening_fees(instrument.index, position_size)

        return await asyncio.gather(
            _degrade(f"{name} depth", depth, Depth(0.0, 0.0)),
            _degrade(f"{name} price impact", price_impact, Fee(0.0, 0.0)),
            _degrade(f"{name} skew impact", skew_impact, Fee(0.0, 0.0)),
            _degrade(f"{name} opening fee", opening_fee, Fee(0.0, 0.0)),
        )

    def _build_groups(self, snapshot: DirectorySnapshot) -> Dict[int, SnapshotGroup]:
        return {
            group_index: self._build_group(snapshot, group_index)
            for group_index in snapshot.group_indexes
        }

    def _build_group(self, snapshot: DirectorySnapshot, group_index: int) -> SnapshotGroup:
        category = snapshot.categories.get(group_index)
        name = category.name if category and category.name else self._category_metrics.group_name(group_index)

        return SnapshotGroup(
            group_index=group_index,
            name=name,
            oi_limit=group_oi_limit_in(snapshot, group_index),
            open_interest=aggregate_oi_in(snapshot, group_index),
            utilization=group_utilization_in(snapshot, group_index),
            skew=group_skew_in(snapshot, group_index),
        )

    async def simplified_snapshot(self) -> SimplifiedSnapshot:
        """Open interest and skew per pair (by name) and per group."""
        snapshot = await self._directory.refresh()

        pairs = {
            instrument.name: OiSkew(
                open_interest=instrument.open_interest,
                skew=self._asset_metrics.skew_of(instrument),
            )
            for _, instrument in sorted(snapshot.instruments.items())
        }
        groups = {
            group_index: OiSkew(
                open_interest=aggregate_oi_in(snapshot, group_index),
                skew=group_skew_in(snapshot, group_index),
            )
            for group_index in snapshot.group_indexes
        }

        return SimplifiedSnapshot(pairs=pairs, groups=groups)
