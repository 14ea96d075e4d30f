"""
Pair listing sources.

SocketApiPairSource reads the public Avantis socket API, which publishes
every pair and group with live open interest in one JSON document.
"""

import logging
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

from .exceptions import FetchFailed
from .http_client import HttpClient
from .models.config import ClientConfig
from .models.market import Category, Instrument, PairListing
from .monitoring import PerformanceMonitor, tracked
from .session_manager import SOCKET_API_SERVICE, SessionManager
from .utils import format_pair_name

logger = logging.getLogger(__name__)


@runtime_checkable
class PairSource(Protocol):
    """Supplies the full pair and group listing."""

    async def fetch_listing(self) -> PairListing:
        """Fetch the listing, raising FetchFailed on any failure."""
        ...


def _sorted_values(mapping: Optional[Dict[str, Any]]) -> Tuple[float, ...]:
    if not mapping:
        return ()
    return tuple(float(mapping[key]) for key in sorted(mapping, key=lambda k: int(k)))


def parse_instrument(index: int, data: Dict[str, Any]) -> Instrument:
    """Convert one socket API pair entry into an Instrument."""
    feed = data.get("feed") or {}
    backup_feed = data.get("backupFeed") or {}
    leverages = data.get("leverages") or {}
    values = data.get("values") or {}
    open_interest = data.get("openInterest") or {}
    timer = data.get("timer") or {}

    return Instrument(
        index=index,
        name=format_pair_name(data["from"], data["to"]),
        group_index=int(data["groupIndex"]),
        fee_index=int(data.get("feeIndex", 0)),
        feed_id=feed.get("feedId", ""),
        backup_feed_id=backup_feed.get("feedId", ""),
        max_open_deviation=float(feed.get("maxOpenDeviationP", 0)),
        # spreadP is a percentage
        spread_bps=float(data.get("spreadP", 0)) * 100,
        price_impact_multiplier=float(data.get("priceImpactMultiplier", 0)),
        skew_impact_multiplier=float(data.get("skewImpactMultiplier", 0)),
        min_leverage=float(leverages["minLeverage"]),
        max_leverage=float(leverages["maxLeverage"]),
        max_gain_percentage=float(values.get("maxGainP", 0)),
        max_sl_percentage=float(values.get("maxSlP", 0)),
        max_oi_percentage=float(values.get("maxLongOiP", 0)),
        usdc_aligned=bool(values.get("isUSDCAligned", True)),
        long_oi=float(open_interest.get("long", 0)),
        short_oi=float(open_interest.get("short", 0)),
        oi_limit=float(data.get("pairMaxOI", 0)),
        tier_thresholds=_sorted_values(timer.get("positionSizeToThresholdTierMap")),
        tier_timers=_sorted_values(timer.get("thresholdTierToTimerMap")),
    )


def parse_category(index: int, data: Dict[str, Any]) -> Category:
    """Convert one socket API group entry into a Category."""
    return Category(
        index=index,
        name=data.get("name") or f"Group {index}",
        oi_limit=float(data.get("groupMaxOI", 0)),
        current_oi=float(data.get("groupOI", 0)),
        max_oi_percentage=float(data.get("maxOpenInterestP", 0)),
        is_spread_dynamic=bool(data.get("isSpreadDynamic", False)),
    )


def parse_listing(payload: Any) -> PairListing:
    """
    Parse a socket API document.

    Unlisted pairs are skipped.

    Raises:
        FetchFailed: If the document is malformed
    """
    try:
        data = payload["data"]
        pair_infos = data["pairInfos"]
        group_infos = data.get("groupInfo") or {}

        categories = {
            int(key): parse_category(int(key), group)
            for key, group in group_infos.items()
        }

        instruments = []
        for key, pair in pair_infos.items():
            if pair.get("isPairListed") is False:
                continue
            instruments.append(parse_instrument(int(key), pair))
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise FetchFailed(f"Malformed pair listing: {e!r}") from e

    instruments.sort(key=lambda i: i.index)
    return PairListing(instruments=tuple(instruments), categories=categories)


class SocketApiPairSource:
    """Pair source backed by the Avantis socket API."""

    def __init__(
        self,
        config: ClientConfig,
        session_manager: Optional[SessionManager] = None,
        http_client: Optional[HttpClient] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        self._url = config.socket_api_url
        self._session_manager = session_manager or SessionManager(config)
        self._http_client = http_client or HttpClient()
        self._monitor = monitor

    @property
    def url(self) -> str:
        return self._url

    async def fetch_listing(self) -> PairListing:
        """Fetch and parse the full pair listing."""
        async with tracked(self._monitor, "fetch_listing", self._url):
            session = await self._session_manager.create_session(SOCKET_API_SERVICE)
            payload = await self._http_client.get_json(session, self._url)
            listing = parse_listing(payload)

        logger.debug(
            f"Fetched {len(listing.instruments)} pairs in "
            f"{len(listing.categories)} groups from {self._url}"
        )
        return listing

    async def close(self) -> None:
        await self._session_manager.close_session(SOCKET_API_SERVICE)
