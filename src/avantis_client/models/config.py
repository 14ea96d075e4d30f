"""
Configuration models for Avantis client.

Immutable configuration structures following state-first design.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict

import yaml

from ..constants import (
    BASE_CHAIN_ID,
    BORROWING_FEES_ADDRESS,
    DEFAULT_CACHE_TTL,
    DEFAULT_PRICE_FEED_URL,
    DEFAULT_PRICE_STREAM_URL,
    DEFAULT_RPC_TIMEOUT,
    DEFAULT_SOCKET_API_URL,
    DEFAULT_TIMEOUT,
    MULTICALL_ADDRESS,
    PAIR_INFOS_ADDRESS,
    PAIR_STORAGE_ADDRESS,
    PRICE_AGGREGATOR_ADDRESS,
    PRICE_CACHE_TTL,
    REFERRAL_ADDRESS,
    TRADING_ADDRESS,
    TRADING_CALLBACKS_ADDRESS,
    TRADING_STORAGE_ADDRESS,
    USDC_ADDRESS,
)
from ..exceptions import InvalidConfiguration
from ..utils import validate_address, validate_url, validate_ws_url


@dataclass(frozen=True)
class ContractAddresses:
    """Protocol contract addresses."""
    trading_storage: str = TRADING_STORAGE_ADDRESS
    pair_storage: str = PAIR_STORAGE_ADDRESS
    pair_infos: str = PAIR_INFOS_ADDRESS
    price_aggregator: str = PRICE_AGGREGATOR_ADDRESS
    usdc: str = USDC_ADDRESS
    trading: str = TRADING_ADDRESS
    multicall: str = MULTICALL_ADDRESS
    referral: str = REFERRAL_ADDRESS
    borrowing_fees: str = BORROWING_FEES_ADDRESS
    trading_callbacks: str = TRADING_CALLBACKS_ADDRESS

    def __post_init__(self):
        """Validate every address field."""
        for item in fields(self):
            value = getattr(self, item.name)
            if not validate_address(value):
                raise InvalidConfiguration(
                    f"Invalid contract address for {item.name}: {value!r}"
                )


@dataclass(frozen=True)
class ClientConfig:
    """Configuration for Avantis client."""
    socket_api_url: str = DEFAULT_SOCKET_API_URL
    price_feed_url: str = DEFAULT_PRICE_FEED_URL
    price_stream_url: str = DEFAULT_PRICE_STREAM_URL
    cache_ttl: float = DEFAULT_CACHE_TTL
    price_cache_ttl: float = PRICE_CACHE_TTL
    timeout: float = DEFAULT_TIMEOUT
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    chain_id: int = BASE_CHAIN_ID
    addresses: ContractAddresses = field(default_factory=ContractAddresses)

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_urls()
        self._validate_durations()

    def _validate_urls(self):
        """Validate endpoint URL format."""
        for name in ("socket_api_url", "price_feed_url"):
            value = getattr(self, name)
            if not validate_url(value):
                raise InvalidConfiguration(
                    f"{name} must be a valid HTTP/HTTPS URL, got {value!r}"
                )
        if not validate_ws_url(self.price_stream_url):
            raise InvalidConfiguration(
                f"price_stream_url must be a valid WS/WSS URL, got {self.price_stream_url!r}"
            )

    def _validate_durations(self):
        """Validate cache lifetimes and timeouts."""
        if self.cache_ttl < 0:
            raise InvalidConfiguration(f"cache_ttl cannot be negative, got {self.cache_ttl}")
        if self.price_cache_ttl < 0:
            raise InvalidConfiguration(
                f"price_cache_ttl cannot be negative, got {self.price_cache_ttl}"
            )
        if self.timeout <= 0:
            raise InvalidConfiguration(f"timeout must be positive, got {self.timeout}")
        if self.rpc_timeout <= 0:
            raise InvalidConfiguration(f"rpc_timeout must be positive, got {self.rpc_timeout}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        """Build configuration from a plain mapping, ignoring unknown keys."""
        known = {item.name for item in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}

        addresses = kwargs.pop("addresses", None)
        if isinstance(addresses, dict):
            kwargs["addresses"] = ContractAddresses(**addresses)
        elif isinstance(addresses, ContractAddresses):
            kwargs["addresses"] = addresses

        for key in ("cache_ttl", "price_cache_ttl", "timeout", "rpc_timeout"):
            if key in kwargs:
                kwargs[key] = float(kwargs[key])
        if "chain_id" in kwargs:
            kwargs["chain_id"] = int(kwargs["chain_id"])

        return cls(**kwargs)

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Create configuration from AVANTIS_* environment variables."""
        env = {
            "socket_api_url": os.getenv("AVANTIS_SOCKET_API_URL"),
            "price_feed_url": os.getenv("AVANTIS_PRICE_FEED_URL"),
            "price_stream_url": os.getenv("AVANTIS_PRICE_STREAM_URL"),
            "cache_ttl": os.getenv("AVANTIS_CACHE_TTL"),
            "timeout": os.getenv("AVANTIS_TIMEOUT"),
            "rpc_timeout": os.getenv("AVANTIS_RPC_TIMEOUT"),
        }
        try:
            return cls.from_dict({key: value for key, value in env.items() if value})
        except InvalidConfiguration:
            raise
        except ValueError as e:
            raise InvalidConfiguration(f"Invalid AVANTIS_* environment value: {e}") from e

    @classmethod
    def from_yaml(cls, path: str) -> "ClientConfig":
        """Load configuration from a YAML file.

        The file may hold the settings at the top level or under an
        ``avantis`` key.
        """
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise InvalidConfiguration(f"Config file {path} must contain a mapping")

        section = data.get("avantis", data)
        if not isinstance(section, dict):
            raise InvalidConfiguration(f"'avantis' section in {path} must be a mapping")

        return cls.from_dict(section)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for caller-driven retry behavior."""
    max_retries: int = 3
    retry_delay: float = 1.0
    backoff_factor: float = 2.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise InvalidConfiguration(f"max_retries cannot be negative, got {self.max_retries}")
        if self.retry_delay < 0:
            raise InvalidConfiguration(f"retry_delay cannot be negative, got {self.retry_delay}")
