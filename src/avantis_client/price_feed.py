"""
Price sources.

HermesPriceFeed reads Pyth prices and price update proofs from the Hermes
HTTP API. Prices are cached for a short time; proofs never are, since a
trade needs a fresh attestation.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .exceptions import PriceFeedError
from .http_client import HttpClient
from .models.config import ClientConfig
from .models.market import Instrument
from .models.trade import PriceQuote, PriceUpdate
from .monitoring import PerformanceMonitor, tracked
from .session_manager import PRICE_FEED_SERVICE, SessionManager

logger = logging.getLogger(__name__)

LATEST_UPDATES_PATH = "/v2/updates/price/latest"

# Pyth charges 1 wei per updated feed on Base
UPDATE_FEE_PER_FEED_WEI = 1


@runtime_checkable
class PriceSource(Protocol):
    """Supplies live prices and oracle update proofs."""

    async def get_price(self, instrument: Instrument) -> float:
        """Current price of a pair."""
        ...

    async def get_price_update(self, feed_ids: Sequence[str]) -> PriceUpdate:
        """Update proof for the given feeds and the native fee to post it."""
        ...


def normalize_feed_id(feed_id: str) -> str:
    """Lower-case, 0x-prefixed feed id."""
    feed_id = feed_id.lower()
    return feed_id if feed_id.startswith("0x") else f"0x{feed_id}"


def parse_quote(entry: Dict[str, Any]) -> PriceQuote:
    """Convert a Hermes ``parsed`` entry into a PriceQuote."""
    price_data = entry["price"]
    expo = int(price_data["expo"])
    scale = 10.0 ** expo
    return PriceQuote(
        feed_id=normalize_feed_id(entry["id"]),
        price=int(price_data["price"]) * scale,
        confidence=int(price_data.get("conf", 0)) * scale,
        publish_time=int(price_data.get("publish_time", 0)),
    )


class HermesPriceFeed:
    """Price source backed by the Pyth Hermes API."""

    def __init__(
        self,
        config: ClientConfig,
        session_manager: Optional[SessionManager] = None,
        http_client: Optional[HttpClient] = None,
        monitor: Optional[PerformanceMonitor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._base_url = config.price_feed_url.rstrip("/")
        self._cache_ttl = config.price_cache_ttl
        self._session_manager = session_manager or SessionManager(config)
        self._http_client = http_client or HttpClient()
        self._monitor = monitor
        self._clock = clock
        self._price_cache: Dict[str, Tuple[PriceQuote, float]] = {}

    async def _fetch_latest(self, feed_ids: Sequence[str]) -> Dict[str, Any]:
        if not feed_ids:
            raise PriceFeedError("At least one feed id is required")

        url = f"{self._base_url}{LATEST_UPDATES_PATH}"
        params: List[Tuple[str, str]] = [("ids[]", normalize_feed_id(f)) for f in feed_ids]
        params.extend([("encoding", "hex"), ("parsed", "true")])

        async with tracked(self._monitor, "fetch_prices", url):
            session = await self._session_manager.create_session(PRICE_FEED_SERVICE)
            payload = await self._http_client.get_json(
                session, url, params=params, error_class=PriceFeedError
            )
            if not isinstance(payload, dict):
                raise PriceFeedError(f"Unexpected price payload from {url}", url=url)
        return payload

    async def get_quotes(self, feed_ids: Sequence[str]) -> Dict[str, PriceQuote]:
        """Latest quotes keyed by normalized feed id, served from cache when fresh."""
        wanted = [normalize_feed_id(f) for f in feed_ids]
        now = self._clock()

        quotes: Dict[str, PriceQuote] = {}
        missing = []
        for feed_id in wanted:
            cached = self._price_cache.get(feed_id)
            if cached is not None and now - cached[1] < self._cache_ttl:
                quotes[feed_id] = cached[0]
            else:
                missing.append(feed_id)

        if missing:
            payload = await self._fetch_latest(missing)
            fetched_at = self._clock()
            try:
                for entry in payload.get("parsed") or []:
                    quote = parse_quote(entry)
                    self._price_cache[quote.feed_id] = (quote, fetched_at)
                    quotes[quote.feed_id] = quote
            except (KeyError, TypeError, ValueError) as e:
                raise PriceFeedError(f"Malformed price payload: {e!r}") from e
            logger.debug(f"Fetched {len(missing)} price quotes from {self._base_url}")

        return quotes

    async def get_quote(self, feed_id: str) -> PriceQuote:
        feed_id = normalize_feed_id(feed_id)
        quotes = await self.get_quotes([feed_id])
        if feed_id not in quotes:
            raise PriceFeedError(f"No price returned for feed {feed_id}")
        return quotes[feed_id]

    async def get_price(self, instrument: Instrument) -> float:
        """Current price of a pair from its primary feed."""
        if not instrument.feed_id:
            raise PriceFeedError(f"Pair {instrument.name} has no price feed")
        quote = await self.get_quote(instrument.feed_id)
        return quote.price

    async def get_price_update(self, feed_ids: Sequence[str]) -> PriceUpdate:
        """Fetch a fresh update proof for the given feeds."""
        payload = await self._fetch_latest(feed_ids)
        binary = payload.get("binary") or {}
        data = binary.get("data") or []
        if not data:
            raise PriceFeedError(f"No price update data returned for {list(feed_ids)}")

        proofs = tuple(d if d.startswith("0x") else f"0x{d}" for d in data)
        return PriceUpdate(data=proofs, update_fee=UPDATE_FEE_PER_FEED_WEI * len(feed_ids))

    def clear_cache(self) -> None:
        self._price_cache.clear()

    async def close(self) -> None:
        await self._session_manager.close_session(PRICE_FEED_SERVICE)
