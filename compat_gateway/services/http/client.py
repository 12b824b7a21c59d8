"""Shared HTTP client for upstream collaborators.

One httpx.AsyncClient with connection pooling is shared by every
upstream lookup and lives for the lifetime of the application.
"""

from __future__ import annotations

import httpx
import structlog

from compat_gateway.config import UpstreamConfig

logger = structlog.get_logger()


class HTTPClientManager:
    """Manages a shared httpx.AsyncClient.

    Usage:
        manager = HTTPClientManager.from_config(settings.upstream)
        await manager.startup()
        response = await manager.client.get("https://...")
        await manager.shutdown()
    """

    def __init__(
        self,
        *,
        max_connections: int = 100,
        max_keepalive_connections: int = 20,
        keepalive_expiry: float = 30.0,
        connect_timeout: float = 5.0,
        read_timeout: float = 15.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize HTTP client manager.

        Args:
            max_connections: Maximum number of concurrent connections.
            max_keepalive_connections: Maximum connections to keep alive.
            keepalive_expiry: Seconds before idle connections are closed.
            connect_timeout: Connection timeout in seconds.
            read_timeout: Read, write and pool timeout in seconds.
            headers: Headers sent with every request.
            transport: Custom transport (tests use httpx.MockTransport).
        """
        self._max_connections = max_connections
        self._max_keepalive_connections = max_keepalive_connections
        self._keepalive_expiry = keepalive_expiry
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout
        self._headers = headers or {}
        self._transport = transport

        self._client: httpx.AsyncClient | None = None
        self._log = logger.bind(component="http_client")

    @classmethod
    def from_config(cls, config: UpstreamConfig) -> HTTPClientManager:
        headers = {"User-Agent": "compat-gateway"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        return cls(read_timeout=config.timeout_seconds, headers=headers)

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the shared HTTP client.

        Raises:
            RuntimeError: If client is not initialized (call startup first)
        """
        if self._client is None:
            raise RuntimeError("HTTP client not initialized. Call startup() first.")
        return self._client

    @property
    def is_started(self) -> bool:
        return self._client is not None

    async def startup(self) -> None:
        """Initialize the HTTP client with connection pooling."""
        if self._client is not None:
            self._log.warning("http_client.already_started")
            return

        limits = httpx.Limits(
            max_connections=self._max_connections,
            max_keepalive_connections=self._max_keepalive_connections,
            keepalive_expiry=self._keepalive_expiry,
        )
        timeout = httpx.Timeout(self._read_timeout, connect=self._connect_timeout)

        self._client = httpx.AsyncClient(
            limits=limits,
            timeout=timeout,
            headers=self._headers,
            transport=self._transport,
        )
        self._log.info("http_client.started", max_connections=self._max_connections)

    async def shutdown(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        self._log.info("http_client.shutdown")
