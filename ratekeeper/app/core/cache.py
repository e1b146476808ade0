"""External key-value cache abstraction.

Provides the opaque string cache the ``external-cache`` rate limit storage
backend writes to, with in-memory and Redis implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import asyncio
import time
from typing import Callable

import redis.asyncio as aioredis

from ratekeeper.app.exceptions import ConfigurationError


@dataclass
class _CacheEntry:
    """Internal cache entry with TTL tracking."""

    value: str
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        """Check if the entry has expired."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at


class CacheBackend(ABC):
    """Abstract base class for cache backends.

    Values are opaque strings; callers own their serialization.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Retrieve a value from the cache.

        Args:
            key: The cache key to look up.

        Returns:
            The cached string, or None if not found or expired.
        """

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Store a value in the cache.

        Args:
            key: The cache key.
            value: The value to store.
            ttl: Time-to-live in seconds; None, zero or negative keeps the
                value until deleted.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a value from the cache.

        Args:
            key: The cache key to remove.
        """

    async def cleanup_expired(self) -> int:
        """Remove expired entries. Returns number removed.

        Backends that expire keys themselves have nothing to do.
        """
        return 0

    async def close(self) -> None:
        """Release any connection held by the backend."""


class InMemoryCache(CacheBackend):
    """In-memory cache implementation with TTL support.

    Not distributed; data is lost when the process restarts. Useful as an
    external cache stand-in for single-instance deployments and tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._data: dict[str, _CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._data[key]
                return None
            return entry.value

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        async with self._lock:
            expires_at = self._clock() + ttl if ttl and ttl > 0 else None
            self._data[key] = _CacheEntry(value=value, expires_at=expires_at)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def cleanup_expired(self) -> int:
        """Remove all expired entries from the cache.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            now = self._clock()
            expired_keys = [
                key for key, entry in self._data.items() if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._data[key]
            return len(expired_keys)


class RedisCache(CacheBackend):
    """Redis-based cache implementation.

    Example:
        >>> cache = RedisCache("redis://localhost:6379/0")
        >>> await cache.set("key", "value", ttl=60)
    """

    def __init__(
        self,
        redis_url: str | None = None,
        *,
        client: aioredis.Redis | None = None,
        socket_timeout: float | None = None,
    ) -> None:
        """Initialize the Redis cache.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
            client: Pre-built client; takes precedence over redis_url.
            socket_timeout: Socket timeout in seconds for every command.
        """
        if client is None and not redis_url:
            raise ConfigurationError("RedisCache requires a redis_url or a client")
        self._redis_url = redis_url
        self._socket_timeout = socket_timeout
        self._redis = client

    def _get_client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_timeout,
            )
        return self._redis

    async def get(self, key: str) -> str | None:
        value = await self._get_client().get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        client = self._get_client()
        if ttl and ttl > 0:
            await client.setex(key, ttl, value)
        else:
            await client.set(key, value)

    async def delete(self, key: str) -> None:
        await self._get_client().delete(key)

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Global cache instance (singleton pattern)
_cache_instance: CacheBackend | None = None


def get_cache(
    redis_url: str | None = None,
    force_new: bool = False,
) -> CacheBackend | None:
    """Get or create the global external cache instance.

    Args:
        redis_url: Redis connection URL. If not provided, uses settings.redis_url.
        force_new: If True, create a new instance even if one exists.

    Returns:
        A RedisCache, or None when no Redis URL is configured.
    """
    global _cache_instance

    if _cache_instance is not None and not force_new:
        return _cache_instance

    from ratekeeper.app.core.config import settings

    url = redis_url or settings.redis_url
    if not url:
        return None

    _cache_instance = RedisCache(url, socket_timeout=settings.redis_socket_timeout)
    return _cache_instance


def reset_cache() -> None:
    """Reset the global cache instance.

    This is primarily useful for testing.
    """
    global _cache_instance
    _cache_instance = None
