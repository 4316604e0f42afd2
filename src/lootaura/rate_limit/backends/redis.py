"""Redis-backed distributed counters.

Issues plain INCR and EXPIRE commands so counts are shared across every
application instance pointed at the same Redis (or Redis-compatible
service such as Upstash).
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

import redis.asyncio as aioredis
from redis.asyncio import ConnectionPool

from lootaura.rate_limit.backends.base import CounterBackend
from lootaura.rate_limit.exceptions import BackendError

logger = logging.getLogger(__name__)


class RedisCounterBackend(CounterBackend):
    """Redis INCR/EXPIRE counter backend.

    Each call is bounded by ``timeout_seconds``; timeouts and connection
    errors propagate to the counter store, which falls back to in-process
    counting for that call.

    Increment and expiry are two separate commands. If EXPIRE fails after a
    successful INCR the key may outlive its window until Redis evicts it;
    the window start is part of the key, so a stale key is never reused.

    Example:
        >>> backend = RedisCounterBackend(
        ...     redis_url="rediss://example.upstash.io:6379",
        ...     token="secret",
        ... )
        >>> await backend.initialize()
        >>> await backend.incr("ip:1.2.3.4:GET:/api/sales:SALES_VIEW_30S:1700000010")
        1
    """

    name = "redis"

    def __init__(
        self,
        redis_url: str,
        token: Optional[str] = None,
        key_prefix: str = "lootaura:rl:",
        pool_size: int = 50,
        timeout_seconds: float = 2.0,
    ):
        """Initialize Redis backend.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
            token: Credential sent as the Redis password, if not in the URL
            key_prefix: Prefix for all counter keys (default: "lootaura:rl:")
            pool_size: Connection pool size (default: 50)
            timeout_seconds: Per-call timeout (default: 2.0)
        """
        self._redis_url = redis_url
        self._token = token
        self._key_prefix = key_prefix
        self._pool_size = pool_size
        self._timeout = timeout_seconds

        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[aioredis.Redis] = None

    @staticmethod
    def _sanitize_url(url: str) -> str:
        """Remove credentials from Redis URL for safe logging."""
        try:
            parsed = urlparse(url)
            if parsed.username or parsed.password:
                safe_host = parsed.hostname or "localhost"
                safe_port = f":{parsed.port}" if parsed.port else ""
                return f"{parsed.scheme}://{safe_host}{safe_port}{parsed.path}"
            return url
        except ValueError:
            return "redis://***"

    async def initialize(self) -> None:
        """Create the connection pool.

        No connection is opened here; the first command connects lazily so a
        Redis outage at boot does not prevent the app from starting.
        """
        if self._client is not None:
            return

        pool_kwargs = {
            "max_connections": self._pool_size,
            "socket_timeout": self._timeout,
            "socket_connect_timeout": self._timeout,
        }
        if self._token:
            pool_kwargs["password"] = self._token

        self._pool = ConnectionPool.from_url(self._redis_url, **pool_kwargs)
        self._client = aioredis.Redis(connection_pool=self._pool)

        # SECURITY: Sanitize URL before logging to avoid credential leaks
        logger.info(
            "RedisCounterBackend initialized: %s", self._sanitize_url(self._redis_url)
        )

    def _require_client(self) -> aioredis.Redis:
        if self._client is None:
            raise BackendError("RedisCounterBackend not initialized")
        return self._client

    async def incr(self, key: str) -> int:
        client = self._require_client()
        reply = await asyncio.wait_for(
            client.incr(f"{self._key_prefix}{key}"), timeout=self._timeout
        )
        try:
            return int(reply)
        except (TypeError, ValueError):
            raise BackendError(f"Malformed INCR reply: {reply!r}") from None

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        client = self._require_client()
        reply = await asyncio.wait_for(
            client.expire(f"{self._key_prefix}{key}", ttl_seconds),
            timeout=self._timeout,
        )
        return bool(reply)

    async def close(self) -> None:
        """Close Redis connection pool."""
        if self._client is not None:
            await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()
        self._client = None
        self._pool = None
        logger.info("RedisCounterBackend closed")
