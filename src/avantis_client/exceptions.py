"""
Exception hierarchy for Avantis client.

Configuration and validation errors are raised at the offending call,
fetch errors surface collaborator failures on required reads.
"""

from typing import Any, Optional


class AvantisError(Exception):
    """Base exception for all Avantis client errors."""
    pass


# Configuration errors
class ConfigurationError(AvantisError):
    """Raised when the client is misconfigured for the requested operation."""
    pass


class InvalidConfiguration(ConfigurationError, ValueError):
    """Raised when a configuration value (e.g. blend weights) is rejected."""
    pass


class MissingSigner(ConfigurationError):
    """Raised when a write operation is requested without a signer."""
    pass


class MissingChainReader(ConfigurationError):
    """Raised when an on-chain read is requested without a chain reader."""
    pass


# Validation errors
class TradeValidationError(AvantisError, ValueError):
    """Base exception for trade intent validation failures."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class InvalidAddress(TradeValidationError):
    pass


class InvalidCollateral(TradeValidationError):
    pass


class InvalidLeverage(TradeValidationError):
    pass


class InvalidIndex(TradeValidationError):
    pass


class InvalidSlippage(TradeValidationError):
    pass


class InvalidTpSl(TradeValidationError):
    pass


# Lookup errors
class InstrumentNotFound(AvantisError, LookupError):
    """Raised when a pair name or index is not in the directory."""

    def __init__(self, ref: Any):
        super().__init__(f"Pair not found: {ref}")
        self.ref = ref


# Fetch errors
class FetchFailed(AvantisError):
    """Raised when a required external fetch fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class PriceFeedError(FetchFailed):
    """Raised when a price or price update proof cannot be obtained."""
    pass
