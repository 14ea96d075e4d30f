"""
Avantis client - composition root for market data and trading.

Builds the leaf services first (monitor, HTTP session, pair source, pair
directory, contract reader, price feed, price stream) and injects them
into the metric, fee, trading and snapshot components.
"""

import logging
from typing import Optional

from dotenv import load_dotenv

from .asset_metrics import AssetMetrics
from .blended_metrics import BlendedMetricsEngine
from .category_metrics import CategoryMetrics
from .chain import ChainReader, ContractReader, Signer
from .constants import (
    DEFAULT_CACHE_TTL,
    DEFAULT_PRICE_FEED_URL,
    DEFAULT_PRICE_STREAM_URL,
    DEFAULT_RPC_TIMEOUT,
    DEFAULT_SOCKET_API_URL,
    DEFAULT_TIMEOUT,
)
from .fee_engine import FeeEngine
from .http_client import HttpClient
from .models.config import ClientConfig
from .models.trade import TransactionReceipt, TransactionRequest
from .monitoring import PerformanceMonitor, Statistics
from .pair_directory import PairDirectory
from .pair_source import PairSource, SocketApiPairSource
from .price_feed import HermesPriceFeed, PriceSource
from .price_stream import HermesPriceStream
from .session_manager import SessionManager
from .snapshot import SnapshotAggregator
from .trade_engine import TradeEngine
from .trading_parameters import TradingParameters
from .utils import shorten_address

load_dotenv()
logger = logging.getLogger(__name__)


class AvantisClient:
    """
    Main Avantis client orchestrator.

    Market data works without a chain reader as long as only the pair
    listing is needed; fee, trading-parameter and position reads need one.
    Submitting transactions needs a signer.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        chain_reader: Optional[ChainReader] = None,
        signer: Optional[Signer] = None,
        pair_source: Optional[PairSource] = None,
        price_source: Optional[PriceSource] = None,
    ):
        """Initialize Avantis client with configuration and collaborators."""
        self._config = config or ClientConfig()
        self._monitor = PerformanceMonitor()
        self._session_manager = SessionManager(self._config)
        self._http_client = HttpClient(self._config.timeout)

        self._pair_source = pair_source or SocketApiPairSource(
            self._config, self._session_manager, self._http_client, self._monitor
        )
        self._price_source = price_source or HermesPriceFeed(
            self._config, self._session_manager, self._http_client, self._monitor
        )
        self._directory = PairDirectory(self._pair_source, ttl=self._config.cache_ttl)
        self._contracts = ContractReader(chain_reader, self._config.rpc_timeout, self._monitor)
        self._price_stream = HermesPriceStream(self._config, self._directory, self._session_manager)

        addresses = self._config.addresses
        self._asset_metrics = AssetMetrics(self._directory)
        self._category_metrics = CategoryMetrics(self._directory)
        self._blended = BlendedMetricsEngine(self._directory)
        self._fees = FeeEngine(self._directory, self._contracts, addresses)
        self._trading_parameters = TradingParameters(self._contracts, addresses, self._fees)
        self._trade = TradeEngine(
            self._directory,
            self._fees,
            self._contracts,
            addresses,
            price_source=self._price_source,
            signer=signer,
        )
        self._snapshots = SnapshotAggregator(
            self._directory, self._asset_metrics, self._category_metrics, self._fees
        )
        self._closed = False

    @classmethod
    def from_env(
        cls,
        chain_reader: Optional[ChainReader] = None,
        signer: Optional[Signer] = None,
    ) -> "AvantisClient":
        """Create client from AVANTIS_* environment variables."""
        return cls(ClientConfig.from_env(), chain_reader=chain_reader, signer=signer)

    @classmethod
    def from_yaml(
        cls,
        path: str,
        chain_reader: Optional[ChainReader] = None,
        signer: Optional[Signer] = None,
    ) -> "AvantisClient":
        return cls(ClientConfig.from_yaml(path), chain_reader=chain_reader, signer=signer)

    # Components
    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def directory(self) -> PairDirectory:
        return self._directory

    @property
    def asset_metrics(self) -> AssetMetrics:
        return self._asset_metrics

    @property
    def category_metrics(self) -> CategoryMetrics:
        return self._category_metrics

    @property
    def blended(self) -> BlendedMetricsEngine:
        return self._blended

    @property
    def fees(self) -> FeeEngine:
        return self._fees

    @property
    def trading_parameters(self) -> TradingParameters:
        return self._trading_parameters

    @property
    def trade(self) -> TradeEngine:
        return self._trade

    @property
    def snapshots(self) -> SnapshotAggregator:
        return self._snapshots

    @property
    def price_stream(self) -> HermesPriceStream:
        return self._price_stream

    @property
    def monitor(self) -> PerformanceMonitor:
        return self._monitor

    @property
    def has_chain_reader(self) -> bool:
        return self._contracts.available

    # Signer
    def set_signer(self, signer: Signer) -> None:
        self._trade.set_signer(signer)
        logger.info(f"Signer set for {shorten_address(signer.address)}")

    def remove_signer(self) -> None:
        self._trade.set_signer(None)

    def has_signer(self) -> bool:
        return self._trade.signer is not None

    @property
    def signer_address(self) -> Optional[str]:
        signer = self._trade.signer
        return signer.address if signer is not None else None

    async def sign_and_send(self, tx: TransactionRequest) -> TransactionReceipt:
        """Send a built transaction through the signer and wait for the receipt."""
        if self._closed:
            raise RuntimeError("Client is closed")
        return await self._trade.submit(tx)

    def get_statistics(self) -> Statistics:
        """Get performance statistics."""
        return self._monitor.statistics

    async def close(self) -> None:
        """Close client and cleanup resources."""
        if not self._closed:
            await self._price_stream.stop()
            await self._session_manager.close_session()
            self._closed = True
            logger.info("Avantis client closed")

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def __del__(self):
        """Cleanup on deletion."""
        if hasattr(self, "_closed") and not self._closed:
            logger.warning("AvantisClient not properly closed - call close() explicitly")


def create_avantis_client(
    socket_api_url: str = DEFAULT_SOCKET_API_URL,
    price_feed_url: str = DEFAULT_PRICE_FEED_URL,
    price_stream_url: str = DEFAULT_PRICE_STREAM_URL,
    cache_ttl: float = DEFAULT_CACHE_TTL,
    timeout: float = DEFAULT_TIMEOUT,
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT,
    chain_reader: Optional[ChainReader] = None,
    signer: Optional[Signer] = None,
) -> AvantisClient:
    """
    Factory function to create Avantis client with common configuration.

    Args:
        socket_api_url: Pair listing endpoint
        price_feed_url: Pyth Hermes base URL
        price_stream_url: Pyth Hermes websocket URL
        cache_ttl: Pair directory cache lifetime in seconds
        timeout: HTTP request timeout in seconds
        rpc_timeout: Contract read timeout in seconds
        chain_reader: Contract read backend
        signer: Transaction signer

    Returns:
        Configured AvantisClient instance
    """
    config = ClientConfig(
        socket_api_url=socket_api_url,
        price_feed_url=price_feed_url,
        price_stream_url=price_stream_url,
        cache_ttl=cache_ttl,
        timeout=timeout,
        rpc_timeout=rpc_timeout,
    )

    return AvantisClient(config, chain_reader=chain_reader, signer=signer)
