"""
Streaming oracle prices over the Pyth Hermes websocket.

Subscriptions are kept by feed id and replayed after every reconnect, so a
caller subscribes once and keeps receiving updates across dropped
connections.

Example usage:
    stream = HermesPriceStream(config, directory)
    await stream.subscribe("BTC/USD", lambda quote: print(quote.price))
    await stream.start()
    ...
    await stream.stop()
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from .constants import STREAM_HEARTBEAT, STREAM_MAX_RECONNECT_ATTEMPTS, STREAM_RECONNECT_DELAY
from .exceptions import PriceFeedError
from .models.config import ClientConfig
from .models.trade import PriceQuote
from .pair_directory import PairDirectory, PairLike
from .price_feed import normalize_feed_id, parse_quote
from .session_manager import PRICE_STREAM_SERVICE, SessionManager

logger = logging.getLogger(__name__)

PriceCallback = Callable[[PriceQuote], Any]
ErrorCallback = Callable[[Exception], Any]


def _is_feed_id(ref: Any) -> bool:
    return isinstance(ref, str) and ref.lower().startswith("0x") and len(ref) == 66


class HermesPriceStream:
    """Pushes Hermes price updates to per-feed callbacks."""

    def __init__(
        self,
        config: ClientConfig,
        directory: Optional[PairDirectory] = None,
        session_manager: Optional[SessionManager] = None,
        reconnect_delay: float = STREAM_RECONNECT_DELAY,
        max_reconnect_attempts: int = STREAM_MAX_RECONNECT_ATTEMPTS,
    ):
        self._url = config.price_stream_url
        self._directory = directory
        self._session_manager = session_manager or SessionManager(config)
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_attempts = max_reconnect_attempts

        self._callbacks: Dict[str, List[PriceCallback]] = {}
        self._error_callbacks: List[ErrorCallback] = []
        self._latest: Dict[str, PriceQuote] = {}
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._task: Optional[asyncio.Task] = None
        self.running = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def subscribed_feeds(self) -> List[str]:
        return list(self._callbacks)

    def latest(self, feed_id: str) -> Optional[PriceQuote]:
        """Last streamed quote of a subscribed feed."""
        return self._latest.get(normalize_feed_id(feed_id))

    def on_error(self, callback: ErrorCallback) -> None:
        """Register a callback for connection errors."""
        self._error_callbacks.append(callback)

    async def resolve_feed_id(self, ref: PairLike) -> str:
        """Feed id of a pair, or ``ref`` itself when it already is one."""
        if _is_feed_id(ref):
            return normalize_feed_id(ref)
        if self._directory is None:
            raise PriceFeedError(f"No feed ID found for {ref}: no pair directory")

        instrument = await self._directory.get(ref)
        if not instrument.feed_id:
            raise PriceFeedError(f"No feed ID found for {instrument.name}")
        return normalize_feed_id(instrument.feed_id)

    async def subscribe(self, ref: PairLike, callback: PriceCallback) -> str:
        """
        Call ``callback`` with every update of a pair's price feed.

        The callback may be a plain function or a coroutine function.

        Args:
            ref: Pair name, index or a 0x-prefixed feed id
            callback: Receives a PriceQuote per update

        Returns:
            The subscribed feed id
        """
        feed_id = await self.resolve_feed_id(ref)
        callbacks = self._callbacks.setdefault(feed_id, [])
        is_new = not callbacks
        callbacks.append(callback)

        if is_new and self.connected:
            await self._send("subscribe", [feed_id])
        logger.debug(f"Subscribed to price feed {feed_id}")
        return feed_id

    async def unsubscribe(self, ref: PairLike, callback: Optional[PriceCallback] = None) -> None:
        """Remove one callback, or all of them when ``callback`` is None."""
        feed_id = await self.resolve_feed_id(ref)
        callbacks = self._callbacks.get(feed_id)
        if callbacks is None:
            return

        if callback is None:
            callbacks.clear()
        elif callback in callbacks:
            callbacks.remove(callback)

        if not callbacks:
            del self._callbacks[feed_id]
            self._latest.pop(feed_id, None)
            if self.connected:
                await self._send("unsubscribe", [feed_id])
            logger.debug(f"Unsubscribed from price feed {feed_id}")

    async def _send(self, message_type: str, feed_ids: List[str]) -> None:
        # Hermes takes ids without the 0x prefix
        await self._ws.send_json({"type": message_type, "ids": [f[2:] for f in feed_ids]})

    async def start(self) -> None:
        """Run the stream in a background task."""
        if self.running:
            return
        self.running = True
        self._task = asyncio.create_task(self.run())
        logger.info(f"Price stream started with {len(self._callbacks)} feeds")

    async def stop(self) -> None:
        """Stop the background task and drop the connection."""
        if not self.running and self._task is None:
            return
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Price stream stopped")

    async def run(self) -> None:
        """
        Connect and dispatch updates until stopped.

        A dropped connection is retried after ``reconnect_delay`` seconds.
        The stream stops after ``max_reconnect_attempts`` consecutive
        failures; a successful connection resets the count.
        """
        self.running = True
        attempts = 0
        while self.running:
            try:
                session = await self._session_manager.create_session(PRICE_STREAM_SERVICE)
                async with session.ws_connect(self._url, heartbeat=STREAM_HEARTBEAT) as ws:
                    self._ws = ws
                    attempts = 0
                    logger.info(f"Price stream connected to {self._url}")
                    if self._callbacks:
                        await self._send("subscribe", list(self._callbacks))
                    await self._read(ws)
            except Exception as e:
                logger.error(f"Price stream error: {e!r}")
                await self._notify_error(e)
            finally:
                self._ws = None

            if not self.running:
                break
            attempts += 1
            if attempts > self._max_reconnect_attempts:
                logger.error(
                    f"Price stream gave up after {self._max_reconnect_attempts} reconnect attempts"
                )
                self.running = False
                break

            logger.info(f"Reconnecting price stream in {self._reconnect_delay}s (attempt {attempts})")
            await asyncio.sleep(self._reconnect_delay)

    async def _read(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    data = json.loads(msg.data)
                except json.JSONDecodeError as e:
                    logger.warning(f"Ignoring malformed price stream message: {e}")
                    continue
                await self._process_message(data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise PriceFeedError(f"Price stream connection error: {ws.exception()!r}")
            elif msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                break

        logger.warning("Price stream connection closed")

    async def _process_message(self, data: Dict[str, Any]) -> None:
        """Dispatch one decoded Hermes message."""
        message_type = data.get("type")

        if message_type == "price_update":
            try:
                quote = parse_quote(data["price_feed"])
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed price update: {e!r}")
                return

            callbacks = self._callbacks.get(quote.feed_id)
            if not callbacks:
                return
            self._latest[quote.feed_id] = quote
            for callback in list(callbacks):
                await self._invoke(callback, quote)

        elif message_type == "response" and data.get("status") == "error":
            logger.error(f"Price stream rejected request: {data.get('error')}")
        else:
            logger.debug(f"Unhandled price stream message: {message_type}")

    async def _notify_error(self, error: Exception) -> None:
        for callback in list(self._error_callbacks):
            await self._invoke(callback, error)

    @staticmethod
    async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Price stream callback {callback!r} failed: {e!r}")
