"""
Group (category) level metrics.

Group open interest is derived by summing member pairs on every call.
The listing also reports a group OI figure; ``is_consistent`` checks the
two agree.
"""

import logging
import math
from typing import Dict

from .asset_metrics import compute_skew, compute_utilization
from .constants import GROUP_NAMES
from .models.market import DirectorySnapshot, OpenInterest
from .pair_directory import PairDirectory

logger = logging.getLogger(__name__)


def aggregate_oi_in(snapshot: DirectorySnapshot, group_index: int) -> OpenInterest:
    """Sum long/short OI of every pair in a group by full scan."""
    long_oi = 0.0
    short_oi = 0.0
    for instrument in snapshot.instruments.values():
        if instrument.group_index == group_index:
            long_oi += instrument.long_oi
            short_oi += instrument.short_oi
    return OpenInterest(long=long_oi, short=short_oi)


def group_oi_limit_in(snapshot: DirectorySnapshot, group_index: int) -> float:
    category = snapshot.categories.get(group_index)
    return category.oi_limit if category is not None else 0.0


def group_utilization_in(snapshot: DirectorySnapshot, group_index: int) -> float:
    oi = aggregate_oi_in(snapshot, group_index)
    return compute_utilization(oi.long, oi.short, group_oi_limit_in(snapshot, group_index))


def group_skew_in(snapshot: DirectorySnapshot, group_index: int) -> float:
    oi = aggregate_oi_in(snapshot, group_index)
    return compute_skew(oi.long, oi.short)


def group_name(group_index: int) -> str:
    """Canonical display name, or a generated label for unknown groups."""
    return GROUP_NAMES.get(group_index, f"Group {group_index}")


class CategoryMetrics:
    """Group-level open interest, utilization and skew."""

    def __init__(self, directory: PairDirectory):
        self._directory = directory

    async def aggregate_oi(self, group_index: int) -> OpenInterest:
        snapshot = await self._directory.refresh()
        return aggregate_oi_in(snapshot, group_index)

    async def get_oi(self) -> Dict[int, OpenInterest]:
        snapshot = await self._directory.refresh()
        return {g: aggregate_oi_in(snapshot, g) for g in snapshot.group_indexes}

    async def group_oi_limit(self, group_index: int) -> float:
        snapshot = await self._directory.refresh()
        return group_oi_limit_in(snapshot, group_index)

    async def get_oi_limits(self) -> Dict[int, float]:
        snapshot = await self._directory.refresh()
        return {g: group_oi_limit_in(snapshot, g) for g in snapshot.group_indexes}

    async def group_utilization(self, group_index: int) -> float:
        snapshot = await self._directory.refresh()
        return group_utilization_in(snapshot, group_index)

    async def get_utilization(self) -> Dict[int, float]:
        snapshot = await self._directory.refresh()
        return {g: group_utilization_in(snapshot, g) for g in snapshot.group_indexes}

    async def group_skew(self, group_index: int) -> float:
        snapshot = await self._directory.refresh()
        return group_skew_in(snapshot, group_index)

    async def get_skew(self) -> Dict[int, float]:
        snapshot = await self._directory.refresh()
        return {g: group_skew_in(snapshot, g) for g in snapshot.group_indexes}

    def group_name(self, group_index: int) -> str:
        return group_name(group_index)

    async def all_group_names(self) -> Dict[int, str]:
        """Names reported by the listing, falling back to the canonical table."""
        snapshot = await self._directory.refresh()
        names = {}
        for g in snapshot.group_indexes:
            category = snapshot.categories.get(g)
            names[g] = category.name if category is not None else group_name(g)
        return names

    async def is_consistent(
        self,
        group_index: int,
        rel_tol: float = 1e-6,
        abs_tol: float = 1e-6,
    ) -> bool:
        """True if the reported group OI matches the sum over member pairs."""
        snapshot = await self._directory.refresh()
        category = snapshot.categories.get(group_index)
        derived = aggregate_oi_in(snapshot, group_index).total
        if category is None:
            return derived == 0

        consistent = math.isclose(category.current_oi, derived, rel_tol=rel_tol, abs_tol=abs_tol)
        if not consistent:
            logger.debug(
                f"Group {group_index} OI mismatch: reported {category.current_oi}, "
                f"derived {derived}"
            )
        return consistent
