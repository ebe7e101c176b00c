"""
Pantry Locator - Redis Cache Service.

Redis-backed JSON cache shared by the mapping adapter (reverse geocodes,
place details) and the per-session location store.

Redis is optional: when it cannot be reached every operation degrades to a
miss, and a circuit breaker stops hammering a dead server.
"""

import json
import hashlib
import logging
import socket
from typing import Optional, Any, Dict
from datetime import datetime, timedelta

from settings import settings

logger = logging.getLogger(__name__)


class CacheService:
    """
    JSON values in Redis with TTLs, behind a circuit breaker.

    All keys are stored under `<namespace>:`; callers pass the bare key.
    """

    def __init__(
        self,
        redis_url: str,
        namespace: str = "pantry",
        failure_threshold: int = 5,
        open_seconds: int = 60
    ):
        self._redis_url = redis_url
        self._namespace = namespace
        self._client = None
        self._available: Optional[bool] = None
        self._failure_threshold = failure_threshold
        self._open_seconds = open_seconds
        self._failures = 0
        self._open_until: Optional[datetime] = None

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}" if self._namespace else key

    @property
    def circuit_open(self) -> bool:
        """True while the breaker is refusing calls."""
        if self._open_until is None:
            return False
        if datetime.now() < self._open_until:
            return True
        # Half-open: let the next call through
        self._open_until = None
        self._failures = 0
        return False

    def _failed(self, operation: str, error: Exception):
        self._failures += 1
        logger.debug(f"Cache {operation} error: {error}")
        if self._failures >= self._failure_threshold and self._open_until is None:
            self._open_until = datetime.now() + timedelta(seconds=self._open_seconds)
            logger.warning(
                f"Cache circuit open for {self._open_seconds}s after {self._failures} failures"
            )

    def _succeeded(self):
        if self._failures:
            logger.info("Cache circuit closed")
        self._failures = 0

    @property
    def client(self):
        """Redis client, created on first use."""
        if self._client is None and self._available is not False:
            try:
                import redis.asyncio as redis
                self._client = redis.from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=20,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                    socket_keepalive=True,
                    socket_keepalive_options={
                        socket.TCP_KEEPIDLE: 60,
                        socket.TCP_KEEPINTVL: 30,
                        socket.TCP_KEEPCNT: 3
                    },
                    retry_on_timeout=True,
                )
            except Exception as e:
                logger.warning(f"Redis unavailable, caching disabled: {e}")
                self._available = False
        return self._client

    def _usable_client(self):
        if self._available is False or self.circuit_open:
            return None
        return self.client

    async def get(self, key: str) -> Optional[Any]:
        """Cached JSON value, or None on a miss or any Redis failure."""
        client = self._usable_client()
        if client is None:
            return None
        try:
            raw = await client.get(self._key(key))
        except Exception as e:
            self._failed("get", e)
            return None
        self._succeeded()
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Dropping undecodable cache entry {key}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 3600) -> bool:
        client = self._usable_client()
        if client is None:
            return False
        try:
            await client.setex(self._key(key), ttl_seconds, json.dumps(value, default=str))
        except Exception as e:
            self._failed("set", e)
            return False
        self._succeeded()
        return True

    async def delete(self, key: str) -> bool:
        client = self._usable_client()
        if client is None:
            return False
        try:
            await client.delete(self._key(key))
        except Exception as e:
            self._failed("delete", e)
            return False
        self._succeeded()
        return True

    @staticmethod
    def generate_key(prefix: str, params: Dict[str, Any]) -> str:
        """Deterministic key from a prefix and JSON-able parameters."""
        digest = hashlib.md5(json.dumps(params, sort_keys=True).encode()).hexdigest()[:12]
        return f"{prefix}:{digest}"

    async def healthcheck(self) -> bool:
        """Ping Redis; ignores the breaker so health reflects reality."""
        if self._available is False or self.client is None:
            return False
        try:
            await self.client.ping()
        except Exception as e:
            self._failed("ping", e)
            return False
        self._available = True
        self._succeeded()
        return True


# Shared instance; connects lazily
cache_service = CacheService(
    settings.redis_url_with_auth,
    namespace=settings.CACHE_NAMESPACE,
    failure_threshold=settings.CACHE_CIRCUIT_FAILURE_THRESHOLD,
    open_seconds=settings.CACHE_CIRCUIT_OPEN_SECONDS,
)
