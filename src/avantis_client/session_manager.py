"""
HTTP session handling for the Avantis client.

The socket API, the Hermes price service and the Hermes price stream
each get their own aiohttp session so one source can be closed without
tearing down the others. The client closes them all on shutdown.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import aiohttp

from .models.config import ClientConfig

logger = logging.getLogger(__name__)

SOCKET_API_SERVICE = "socket_api"
PRICE_FEED_SERVICE = "hermes"
PRICE_STREAM_SERVICE = "hermes_stream"


class SessionManager:
    """Keeps one HTTP session per named service."""

    def __init__(self, config: ClientConfig, max_connections: int = 20):
        self._config = config
        self._max_connections = max_connections
        self._sessions: Dict[str, aiohttp.ClientSession] = {}
        self._lock = asyncio.Lock()

    async def create_session(self, service: str = SOCKET_API_SERVICE) -> aiohttp.ClientSession:
        """Return the open session for ``service``, creating it on first use."""
        async with self._lock:
            session = self._sessions.get(service)
            if session is not None and not session.closed:
                return session

            connector = aiohttp.TCPConnector(
                limit=self._max_connections,
                ttl_dns_cache=300,
                use_dns_cache=True,
            )
            session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self._config.timeout),
                headers={
                    "User-Agent": "avantis-client/0.1",
                    "Accept": "application/json",
                },
            )
            self._sessions[service] = session
            logger.debug(f"Opened HTTP session for {service}")
            return session

    async def close_session(self, service: Optional[str] = None) -> None:
        """Close one service's session, or every session when ``service`` is None."""
        async with self._lock:
            names = list(self._sessions) if service is None else [service]
            for name in names:
                session = self._sessions.pop(name, None)
                if session is not None and not session.closed:
                    await session.close()
                    logger.debug(f"Closed HTTP session for {name}")

    def session(self, service: str = SOCKET_API_SERVICE) -> Optional[aiohttp.ClientSession]:
        """Current session for ``service`` without creating one."""
        return self._sessions.get(service)

    @property
    def open_services(self) -> List[str]:
        return [name for name, s in self._sessions.items() if not s.closed]
