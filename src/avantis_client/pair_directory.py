"""
Pair directory with a time-bounded cache.

The directory owns one DirectorySnapshot reference. A refresh builds a
complete new snapshot from the pair source and publishes it with a single
assignment, so readers see either the old or the new snapshot.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

from .constants import DEFAULT_CACHE_TTL
from .exceptions import InstrumentNotFound
from .models.market import Category, DirectorySnapshot, Instrument
from .pair_source import PairSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ByName:
    name: str


@dataclass(frozen=True)
class ByIndex:
    index: int


PairRef = Union[ByName, ByIndex]
PairLike = Union[str, int, ByName, ByIndex]


def pair_ref(value: PairLike) -> PairRef:
    """Normalize a pair name, index or PairRef into a PairRef."""
    if isinstance(value, (ByName, ByIndex)):
        return value
    # bool is an int subclass
    if isinstance(value, bool):
        raise TypeError(f"Pair reference must be a name or index, got {value!r}")
    if isinstance(value, int):
        return ByIndex(value)
    if isinstance(value, str):
        return ByName(value)
    raise TypeError(f"Pair reference must be a name or index, got {value!r}")


def find_instrument(snapshot: DirectorySnapshot, ref: PairLike) -> Instrument:
    """Resolve a pair reference against a snapshot.

    Raises:
        InstrumentNotFound: If the pair is not in the snapshot
    """
    resolved = pair_ref(ref)
    if isinstance(resolved, ByName):
        instrument = snapshot.find(resolved.name)
    else:
        instrument = snapshot.instruments.get(resolved.index)

    if instrument is None:
        raise InstrumentNotFound(ref)
    return instrument


class PairDirectory:
    """
    Cached directory of tradeable pairs and their groups.

    A cached snapshot is served while it is younger than ``ttl`` seconds.
    Past that, every read goes through a refresh, and a failed refresh
    propagates its error; the previous snapshot stays visible through
    ``snapshot`` but is not served by lookups.
    """

    def __init__(
        self,
        source: PairSource,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = source
        self._ttl = ttl
        self._clock = clock
        self._snapshot: Optional[DirectorySnapshot] = None
        self._lock = asyncio.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def snapshot(self) -> Optional[DirectorySnapshot]:
        """Most recently published snapshot, fresh or not."""
        return self._snapshot

    def is_fresh(self) -> bool:
        return self._is_fresh(self._snapshot)

    def _is_fresh(self, snapshot: Optional[DirectorySnapshot]) -> bool:
        return snapshot is not None and self._clock() - snapshot.fetched_at < self._ttl

    async def refresh(self, force: bool = False) -> DirectorySnapshot:
        """
        Return a fresh snapshot, fetching a new listing if needed.

        Args:
            force: Fetch even if the cached snapshot is still fresh

        Raises:
            FetchFailed: If the listing cannot be fetched
        """
        snapshot = self._snapshot
        if not force and self._is_fresh(snapshot):
            return snapshot

        async with self._lock:
            # Another task may have refreshed while we waited
            snapshot = self._snapshot
            if not force and self._is_fresh(snapshot):
                return snapshot

            try:
                listing = await self._source.fetch_listing()
            except Exception as e:
                logger.error(f"Pair directory refresh failed: {e}")
                raise

            snapshot = DirectorySnapshot.build(listing, self._clock())
            self._snapshot = snapshot

        logger.info(
            f"Pair directory refreshed: {len(snapshot.instruments)} pairs, "
            f"{len(snapshot.categories)} groups"
        )
        return snapshot

    async def get(self, ref: PairLike) -> Instrument:
        """Look up a pair by name (case-insensitive) or index."""
        snapshot = await self.refresh()
        return find_instrument(snapshot, ref)

    async def exists(self, ref: PairLike) -> bool:
        snapshot = await self.refresh()
        try:
            find_instrument(snapshot, ref)
        except InstrumentNotFound:
            return False
        return True

    async def get_index(self, name: str) -> int:
        instrument = await self.get(ByName(name))
        return instrument.index

    async def list_names(self) -> List[str]:
        """Pair names in index order."""
        snapshot = await self.refresh()
        return [snapshot.instruments[i].name for i in sorted(snapshot.instruments)]

    async def pairs(self) -> List[Instrument]:
        """All listed pairs in index order."""
        snapshot = await self.refresh()
        return [snapshot.instruments[i] for i in sorted(snapshot.instruments)]

    async def pairs_count(self) -> int:
        snapshot = await self.refresh()
        return len(snapshot.instruments)

    async def group_indexes(self) -> Tuple[int, ...]:
        snapshot = await self.refresh()
        return snapshot.group_indexes

    async def get_group(self, group_index: int) -> Optional[Category]:
        """Reported category data, or None if the listing has no such group."""
        snapshot = await self.refresh()
        return snapshot.categories.get(group_index)

    def clear(self) -> None:
        """Drop the cached snapshot."""
        self._snapshot = None
