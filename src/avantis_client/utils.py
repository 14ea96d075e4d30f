"""
Utility functions for Avantis client.

Fixed-point conversions, address helpers and small fee helpers following
functional programming principles.
"""

import asyncio
import logging
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Tuple, TypeVar, Union

from .constants import BPS_DIVISOR, NATIVE_DECIMALS, PRICE_DECIMALS, USDC_DECIMALS

if TYPE_CHECKING:
    from .models.config import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")
Number = Union[int, float, str, Decimal]

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def _to_units(value: Number, decimals: int) -> int:
    scaled = Decimal(str(value)) * (Decimal(10) ** decimals)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _from_units(units: Union[int, str], decimals: int) -> float:
    return float(Decimal(int(units)) / (Decimal(10) ** decimals))


def to_usdc_units(amount: Number) -> int:
    """Convert a USDC amount to 6-decimal fixed point."""
    return _to_units(amount, USDC_DECIMALS)


def from_usdc_units(units: Union[int, str]) -> float:
    """Convert 6-decimal fixed point to a USDC amount."""
    return _from_units(units, USDC_DECIMALS)


def to_price_units(price: Number) -> int:
    """Convert a price to 10-decimal fixed point."""
    return _to_units(price, PRICE_DECIMALS)


def from_price_units(units: Union[int, str]) -> float:
    """Convert 10-decimal fixed point to a price."""
    return _from_units(units, PRICE_DECIMALS)


def to_wei(amount: Number) -> int:
    """Convert a native token amount to wei."""
    return _to_units(amount, NATIVE_DECIMALS)


def from_wei(wei: Union[int, str]) -> float:
    """Convert wei to a native token amount."""
    return _from_units(wei, NATIVE_DECIMALS)


def calculate_fee_usdc(position_size: float, fee_bps: float) -> float:
    """Fee in USDC for a position size and a fee in basis points."""
    return position_size * fee_bps / BPS_DIVISOR


def calculate_effective_collateral(collateral: float, opening_fee: float) -> float:
    """Collateral left after the opening fee is paid."""
    return collateral - opening_fee


def validate_address(address: Any) -> bool:
    """Validate EVM address format."""
    if not address or not isinstance(address, str):
        return False
    return bool(_ADDRESS_RE.match(address))


def shorten_address(address: str, chars: int = 4) -> str:
    """Shorten an address for display, e.g. 0x1234...abcd."""
    if not validate_address(address):
        return address
    return f"{address[:chars + 2]}...{address[-chars:]}"


def validate_url(url: str) -> bool:
    """Validate URL format."""
    if not url or not isinstance(url, str):
        return False
    return url.startswith(("http://", "https://")) and "." in url


def validate_ws_url(url: str) -> bool:
    """Validate websocket URL format."""
    if not url or not isinstance(url, str):
        return False
    return url.startswith(("ws://", "wss://")) and "." in url


def format_pair_name(base: str, quote: str = "USD") -> str:
    """Build a pair name such as "ETH/USD"."""
    return f"{base.upper()}/{quote.upper()}"


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    retry_config: "RetryConfig",
    retry_on: Tuple[type, ...] = (Exception,),
) -> T:
    """
    Run an async operation, retrying failures with exponential backoff.

    No component calls this on its own; callers opt in around the reads
    they want retried.

    Args:
        operation: Zero-argument coroutine function
        retry_config: Retry limits and delays
        retry_on: Exception types that trigger a retry

    Returns:
        The operation's result

    Raises:
        The last exception once retries are exhausted
    """
    last_exception: Optional[BaseException] = None

    for attempt in range(retry_config.max_retries + 1):
        try:
            return await operation()
        except retry_on as e:
            last_exception = e

            # Don't retry on the last attempt
            if attempt == retry_config.max_retries:
                break

            delay = retry_config.retry_delay * (retry_config.backoff_factor ** attempt)
            logger.debug(f"Attempt {attempt + 1} failed ({e}), retrying in {delay:.2f}s")
            await asyncio.sleep(delay)

    raise last_exception
