"""
HTTP client for Avantis off-chain services.

Executes single-shot JSON GET requests. Transport failures, any status
outside 2xx and malformed bodies are surfaced as FetchFailed; retrying is
left to the caller.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import aiohttp
from aiohttp import ClientResponse, ClientSession

from .exceptions import FetchFailed

logger = logging.getLogger(__name__)

Params = Union[Dict[str, Any], Sequence[Tuple[str, Any]]]


class HttpClient:
    """HTTP client for JSON endpoints."""

    def __init__(self, timeout: Optional[float] = None):
        """Initialize HTTP client.

        Args:
            timeout: Per-request timeout in seconds, overriding the session's
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None

    async def get_json(
        self,
        session: ClientSession,
        url: str,
        params: Optional[Params] = None,
        error_class: type = FetchFailed,
    ) -> Any:
        """Execute a GET request and decode the JSON body."""
        request_kwargs: Dict[str, Any] = {"params": params}
        if self._timeout is not None:
            request_kwargs["timeout"] = self._timeout

        try:
            async with session.get(url, **request_kwargs) as response:
                return await self._process_response(response, url, error_class)
        except FetchFailed:
            raise
        except asyncio.TimeoutError as e:
            logger.error(f"Request to {url} timed out")
            raise error_class(f"Request to {url} timed out", url=url) from e
        except aiohttp.ClientError as e:
            logger.error(f"Request to {url} failed: {e}")
            raise error_class(f"Request to {url} failed: {e}", url=url) from e

    async def _process_response(
        self,
        response: ClientResponse,
        url: str,
        error_class: type,
    ) -> Any:
        """Check status and decode JSON."""
        response_text = await response.text()

        if not 200 <= response.status < 300:
            logger.error(f"HTTP {response.status} from {url}: {response_text[:200]}")
            raise error_class(
                f"HTTP {response.status}: {response_text[:200]}",
                status_code=response.status,
                url=url,
            )

        try:
            return json.loads(response_text)
        except json.JSONDecodeError as e:
            raise error_class(
                f"Invalid JSON response (Status {response.status}): {response_text[:200]}",
                status_code=response.status,
                url=url,
            ) from e
