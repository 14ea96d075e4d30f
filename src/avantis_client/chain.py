"""
On-chain collaborator interfaces.

The client never encodes ABI data or touches key material. It talks to
the chain through two capabilities supplied by the caller:

- ChainReader: read-only contract calls
- Signer: transaction signing and submission

ContractReader wraps a ChainReader with a per-call timeout, monitoring and
a per-call fallback policy: either propagate failures or replace them
with a default value.
"""

import asyncio
import logging
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from .exceptions import MissingChainReader
from .models.trade import TransactionReceipt, TransactionRequest
from .monitoring import PerformanceMonitor, tracked

logger = logging.getLogger(__name__)

PROPAGATE: Any = object()


@runtime_checkable
class ChainReader(Protocol):
    """Read-only access to contract state."""

    async def call(self, address: str, function: str, args: Sequence[Any]) -> Any:
        """Call a view function and return its decoded result."""
        ...


@runtime_checkable
class Signer(Protocol):
    """Transaction signing capability."""

    @property
    def address(self) -> str:
        ...

    async def sign_transaction(self, tx: TransactionRequest) -> bytes:
        """Return the signed, encoded transaction."""
        ...

    async def send_transaction(self, tx: TransactionRequest) -> str:
        """Sign and broadcast a transaction, returning its hash."""
        ...

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        ...


class ContractReader:
    """Contract reads with timeout, monitoring and fallback policy."""

    def __init__(
        self,
        chain_reader: Optional[ChainReader],
        timeout: float,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        self._chain_reader = chain_reader
        self._timeout = timeout
        self._monitor = monitor

    @property
    def available(self) -> bool:
        return self._chain_reader is not None

    async def read(
        self,
        address: str,
        function: str,
        *args: Any,
        fallback: Any = PROPAGATE,
    ) -> Any:
        """
        Call a contract view function.

        Args:
            address: Contract address
            function: Function name
            *args: Function arguments
            fallback: Value returned if the read fails or times out. When
                left unset the failure propagates unchanged.

        Raises:
            MissingChainReader: No chain reader configured and no fallback
            asyncio.TimeoutError: The read timed out and no fallback
        """
        if self._chain_reader is None:
            if fallback is PROPAGATE:
                raise MissingChainReader(f"A chain reader is required to call {function}")
            return fallback

        try:
            async with tracked(self._monitor, function, address):
                return await asyncio.wait_for(
                    self._chain_reader.call(address, function, tuple(args)),
                    timeout=self._timeout,
                )
        except Exception as e:
            if fallback is PROPAGATE:
                raise
            logger.debug(f"{function}{tuple(args)} failed ({e!r}), using {fallback!r}")
            return fallback
