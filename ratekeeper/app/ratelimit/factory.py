"""Builds rate limiters and their window stores from configuration."""

import time
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratekeeper.app.core.cache import CacheBackend, get_cache
from ratekeeper.app.core.config import settings
from ratekeeper.app.core.logging import get_logger
from ratekeeper.app.ratelimit.limiter import RateLimiter
from ratekeeper.app.ratelimit.options import RateLimiterOptions
from ratekeeper.app.ratelimit.storage import (
    CacheWindowStore,
    DatabaseWindowStore,
    MemoryWindowStore,
    WindowStore,
)

logger = get_logger(__name__)


def create_store(
    options: RateLimiterOptions,
    *,
    cache: Optional[CacheBackend] = None,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    clock: Callable[[], float] = time.time,
) -> WindowStore:
    """Create the window store selected by options.storage.

    An ``external-cache`` store without a cache is a configuration error; it
    is logged and the store runs without persisting anything.
    """
    if options.storage == "durable":
        return DatabaseWindowStore(session_maker, clock=clock)

    if options.storage == "external-cache":
        if cache is None:
            logger.error(
                'Rate limiter is configured with storage "external-cache" '
                "but no external cache is configured (set REDIS_URL). "
                "Requests will not be rate limited."
            )
        return CacheWindowStore(cache, options.window_seconds)

    return MemoryWindowStore(
        options.window_seconds,
        clock=clock,
        max_entries=settings.rate_limit_memory_max_entries,
    )


def create_rate_limiter(
    options: Optional[RateLimiterOptions] = None,
    *,
    cache: Optional[CacheBackend] = None,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    clock: Callable[[], float] = time.time,
    storage_timeout: Optional[float] = None,
) -> RateLimiter:
    """Create a RateLimiter.

    Args:
        options: Limiter options; built from settings when omitted
        cache: External cache for the ``external-cache`` backend; defaults
            to the Redis cache configured by REDIS_URL
        session_maker: Session factory for the ``durable`` backend;
            defaults to the engine configured by DATABASE_URL
        clock: Time source returning UNIX time in seconds
        storage_timeout: Upper bound for each store call in seconds

    Returns:
        Configured RateLimiter
    """
    options = options or settings.rate_limiter_options()
    if options.storage == "external-cache" and cache is None:
        cache = get_cache()

    store = create_store(options, cache=cache, session_maker=session_maker, clock=clock)
    logger.info(
        f"Using {store.name} rate limit storage "
        f"(window={options.window_seconds}s, max={options.max_requests}, "
        f"detection={options.detection}, custom_rules={len(options.custom_rules)})"
    )
    return RateLimiter(
        options,
        store,
        clock=clock,
        storage_timeout=storage_timeout or settings.rate_limit_storage_timeout_seconds,
    )


# Global limiter instance (singleton pattern)
_limiter_instance: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the process-wide limiter built from settings."""
    global _limiter_instance
    if _limiter_instance is None:
        _limiter_instance = create_rate_limiter()
    return _limiter_instance


def reset_rate_limiter() -> None:
    """Reset the global limiter instance.

    This is primarily useful for testing.
    """
    global _limiter_instance
    _limiter_instance = None
