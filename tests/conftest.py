# -*- coding: utf-8 -*-
"""
Shared fixtures and fakes for testing Avantis client.
"""

import pytest
from typing import Any, Dict, List, Optional, Sequence

from avantis_client.constants import ZERO_ADDRESS
from avantis_client.chain import ContractReader
from avantis_client.fee_engine import FeeEngine
from avantis_client.models import ContractAddresses, Instrument, TransactionReceipt
from avantis_client.models.trade import PriceUpdate, TransactionRequest
from avantis_client.monitoring import PerformanceMonitor
from avantis_client.pair_directory import PairDirectory
from avantis_client.pair_source import parse_listing

BTC_FEED = "0x" + "e6" * 32
ETH_FEED = "0x" + "ff" * 32
EUR_FEED = "0x" + "a9" * 32
TRADER = "0x" + "1" * 40
REFERRER = "0x" + "2" * 40


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePairSource:
    """Pair source returning a parsed payload, counting fetches."""

    def __init__(self, payload: Dict[str, Any]):
        self.payload = payload
        self.calls = 0
        self.error: Optional[Exception] = None

    async def fetch_listing(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return parse_listing(self.payload)


class FakeChainReader:
    """
    Chain reader answering from a response table.

    Keys are either ``(function, args)`` for one exact call or a bare
    function name for every call of that function. Exception values are
    raised.
    """

    def __init__(self, responses: Optional[Dict[Any, Any]] = None):
        self.responses: Dict[Any, Any] = dict(responses or {})
        self.calls: List[tuple] = []

    async def call(self, address: str, function: str, args: Sequence[Any]) -> Any:
        args = tuple(args)
        self.calls.append((address, function, args))
        for key in ((function, args), function):
            if key in self.responses:
                value = self.responses[key]
                if isinstance(value, Exception):
                    raise value
                return value
        raise RuntimeError(f"execution reverted: {function}{args}")

    def called(self, function: str) -> List[tuple]:
        return [args for _, name, args in self.calls if name == function]


class FakePriceSource:
    """Price source with per-feed prices and failures."""

    def __init__(self, prices: Dict[str, float]):
        self.prices = dict(prices)
        self.failing: set = set()
        self.update_error: Optional[Exception] = None
        self.update_requests: List[List[str]] = []

    async def get_price(self, instrument: Instrument) -> float:
        if instrument.feed_id in self.failing or instrument.feed_id not in self.prices:
            raise RuntimeError(f"no price for {instrument.name}")
        return self.prices[instrument.feed_id]

    async def get_price_update(self, feed_ids: Sequence[str]) -> PriceUpdate:
        self.update_requests.append(list(feed_ids))
        if self.update_error is not None:
            raise self.update_error
        return PriceUpdate(data=tuple("0xproof" for _ in feed_ids), update_fee=len(feed_ids))


class FakeSigner:
    """Signer recording sent transactions."""

    def __init__(self, address: str = TRADER, success: bool = True):
        self._address = address
        self.success = success
        self.sent: List[TransactionRequest] = []
        self.send_error: Optional[Exception] = None
        self.receipt_error: Optional[Exception] = None

    @property
    def address(self) -> str:
        return self._address

    async def sign_transaction(self, tx: TransactionRequest) -> bytes:
        return b"signed"

    async def send_transaction(self, tx: TransactionRequest) -> str:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(tx)
        return f"0x{len(self.sent):064x}"

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        if self.receipt_error is not None:
            raise self.receipt_error
        return TransactionReceipt(
            tx_hash=tx_hash, success=self.success, block_number=100, gas_used=21000
        )


# Mock data fixtures
@pytest.fixture
def socket_payload() -> Dict[str, Any]:
    """Mock socket API document with two groups and one delisted pair."""
    return {
        "data": {
            "pairInfos": {
                "0": {
                    "from": "BTC",
                    "to": "USD",
                    "groupIndex": 0,
                    "feeIndex": 0,
                    "spreadP": 0.05,
                    "priceImpactMultiplier": 0.1,
                    "skewImpactMultiplier": 0.2,
                    "pairMaxOI": 100000,
                    "feed": {"feedId": BTC_FEED, "maxOpenDeviationP": 0.5},
                    "backupFeed": {"feedId": "0x" + "00" * 32},
                    "leverages": {"minLeverage": 2, "maxLeverage": 500},
                    "values": {"maxGainP": 500, "maxSlP": 80, "maxLongOiP": 60},
                    "openInterest": {"long": 6000, "short": 4000},
                    "timer": {
                        "positionSizeToThresholdTierMap": {"1": 50000, "0": 10000},
                        "thresholdTierToTimerMap": {"0": 5, "1": 10},
                    },
                    "isPairListed": True,
                },
                "1": {
                    "from": "ETH",
                    "to": "USD",
                    "groupIndex": 0,
                    "spreadP": 0.05,
                    "priceImpactMultiplier": 0.1,
                    "skewImpactMultiplier": 0.2,
                    "pairMaxOI": 50000,
                    "feed": {"feedId": ETH_FEED},
                    "leverages": {"minLeverage": 2, "maxLeverage": 250},
                    "openInterest": {"long": 2000, "short": 2000},
                    "isPairListed": True,
                },
                "2": {
                    "from": "EUR",
                    "to": "USD",
                    "groupIndex": 2,
                    "spreadP": 0.01,
                    "pairMaxOI": 0,
                    "feed": {"feedId": EUR_FEED},
                    "leverages": {"minLeverage": 10, "maxLeverage": 100},
                    "openInterest": {"long": 0, "short": 0},
                },
                "3": {
                    "from": "OLD",
                    "to": "USD",
                    "groupIndex": 0,
                    "leverages": {"minLeverage": 2, "maxLeverage": 50},
                    "openInterest": {"long": 999, "short": 999},
                    "isPairListed": False,
                },
            },
            "groupInfo": {
                "0": {
                    "name": "Crypto 1",
                    "groupMaxOI": 200000,
                    "groupOI": 14000,
                    "maxOpenInterestP": 50,
                    "isSpreadDynamic": True,
                },
                "2": {"name": "Forex", "groupMaxOI": 0, "groupOI": 0},
            },
        }
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pair_source(socket_payload) -> FakePairSource:
    return FakePairSource(socket_payload)


@pytest.fixture
def directory(pair_source, clock) -> PairDirectory:
    """Pair directory over the fake source with a 300s TTL."""
    return PairDirectory(pair_source, ttl=300.0, clock=clock)


@pytest.fixture
def chain_reader() -> FakeChainReader:
    """Chain reader with fee, referral and execution fee responses."""
    return FakeChainReader({
        ("pairBaseFeeParameter", (0,)): 100,
        ("pairHourlyBorrowingFee", (0, True)): 2,
        ("pairHourlyBorrowingFee", (0, False)): 1,
        "pairBaseFeeParameter": 50,
        "pairHourlyBorrowingFee": 1,
        "getOpeningFee": 8,
        "getClosingFee": 6,
        "referrerByTrader": ZERO_ADDRESS,
        "executionFee": 350_000_000_000_000,
    })


@pytest.fixture
def addresses() -> ContractAddresses:
    return ContractAddresses()


@pytest.fixture
def monitor() -> PerformanceMonitor:
    return PerformanceMonitor()


@pytest.fixture
def contracts(chain_reader, monitor) -> ContractReader:
    return ContractReader(chain_reader, timeout=5.0, monitor=monitor)


@pytest.fixture
def fee_engine(directory, contracts, addresses) -> FeeEngine:
    return FeeEngine(directory, contracts, addresses)


@pytest.fixture
def price_source() -> FakePriceSource:
    return FakePriceSource({BTC_FEED: 50000.0, ETH_FEED: 2000.0, EUR_FEED: 1.1})


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def trader() -> str:
    return TRADER


@pytest.fixture
def referrer() -> str:
    return REFERRER
