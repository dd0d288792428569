"""Shared HTTP client pool for every outbound cover request.

Hey future me - provider lookups (Google Books, Longitood) AND cover downloads all go
through this ONE httpx.AsyncClient. Don't create ad-hoc AsyncClients in adapters: you'd
lose keep-alive and the global connection cap that keeps us polite to the providers.

Usage:
    from coverspot.infrastructure.integrations.http_pool import HttpClientPool

    client = await HttpClientPool.get_client()
    response = await client.get("https://covers.openlibrary.org/b/isbn/...")

HttpClientPool.close() runs at app shutdown (see api/main.py lifespan).
"""

import asyncio
import logging
from typing import Any, ClassVar

import httpx

logger = logging.getLogger(__name__)


class HttpClientPool:
    """Singleton HTTP client pool for connection reuse.

    Features:
    - Lazy initialization (created on first use)
    - Safe concurrent first use via asyncio.Lock
    - Configurable limits, timeout and User-Agent (applied on creation)
    - Proper cleanup at shutdown
    """

    # Hey future me, these are CLASS VARIABLES shared by every caller. configure() only changes
    # what the NEXT created client looks like - an existing client keeps its settings until
    # close() is called.
    _client: ClassVar[httpx.AsyncClient | None] = None
    _lock: ClassVar[asyncio.Lock | None] = None
    _initialized: ClassVar[bool] = False

    DEFAULT_TIMEOUT: ClassVar[float] = 30.0
    DEFAULT_MAX_KEEPALIVE: ClassVar[int] = 20
    DEFAULT_MAX_CONNECTIONS: ClassVar[int] = 50
    DEFAULT_USER_AGENT: ClassVar[str] = "coverspot/0.1"

    _timeout: ClassVar[float] = DEFAULT_TIMEOUT
    _max_keepalive: ClassVar[int] = DEFAULT_MAX_KEEPALIVE
    _max_connections: ClassVar[int] = DEFAULT_MAX_CONNECTIONS
    _user_agent: ClassVar[str] = DEFAULT_USER_AGENT

    @classmethod
    def configure(
        cls,
        timeout: float | None = None,
        max_keepalive: int | None = None,
        max_connections: int | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Set the configuration used when the client is (re)created."""
        cls._timeout = timeout or cls.DEFAULT_TIMEOUT
        cls._max_keepalive = max_keepalive or cls.DEFAULT_MAX_KEEPALIVE
        cls._max_connections = max_connections or cls.DEFAULT_MAX_CONNECTIONS
        cls._user_agent = user_agent or cls.DEFAULT_USER_AGENT

    @classmethod
    def _ensure_lock(cls) -> asyncio.Lock:
        # Lazy: asyncio.Lock must be created inside a running loop context.
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(cls) -> httpx.AsyncClient:
        """Get the shared HTTP client instance, creating it on first call."""
        async with cls._ensure_lock():
            if cls._client is None:
                cls._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(cls._timeout),
                    limits=httpx.Limits(
                        max_keepalive_connections=cls._max_keepalive,
                        max_connections=cls._max_connections,
                    ),
                    headers={"User-Agent": cls._user_agent},
                    http2=True,
                    # Cover CDNs love redirects (OpenLibrary -> archive.org)
                    follow_redirects=True,
                )
                cls._initialized = True
                logger.info(
                    "HTTP client pool initialized (timeout=%.1fs, keepalive=%d, max_conn=%d)",
                    cls._timeout,
                    cls._max_keepalive,
                    cls._max_connections,
                )
            return cls._client

    @classmethod
    async def close(cls) -> None:
        """Close the shared client. The next get_client() creates a fresh one."""
        async with cls._ensure_lock():
            if cls._client is not None:
                await cls._client.aclose()
                cls._client = None
                cls._initialized = False
                logger.info("HTTP client pool closed")
        # The lock is bound to the loop that created it; drop it with the client.
        cls._lock = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized

    @classmethod
    def get_pool_stats(cls) -> dict[str, Any]:
        if cls._client is None:
            return {"initialized": False}
        return {
            "initialized": True,
            "timeout": cls._timeout,
            "max_connections": cls._max_connections,
            "max_keepalive": cls._max_keepalive,
            "user_agent": cls._user_agent,
        }
