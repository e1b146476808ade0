"""Core utilities for the rate limiter."""

from ratekeeper.app.core.cache import (
    CacheBackend,
    InMemoryCache,
    RedisCache,
    get_cache,
    reset_cache,
)
from ratekeeper.app.core.config import settings
from ratekeeper.app.core.logging import get_logger, setup_logging

__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "RedisCache",
    "get_cache",
    "reset_cache",
    "settings",
    "get_logger",
    "setup_logging",
]
