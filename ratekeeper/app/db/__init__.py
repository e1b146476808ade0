"""Database package for the durable rate limit storage backend.

This package provides:
- The rate_limit table model
- Asynchronous engine and session management
"""

from ratekeeper.app.db.base import Base
from ratekeeper.app.db.models import RateLimitRecord
from ratekeeper.app.db.async_session import (
    close_async_engine,
    get_async_engine,
    get_async_session_maker,
    init_rate_limit_table,
)

__all__ = [
    "Base",
    "RateLimitRecord",
    "close_async_engine",
    "get_async_engine",
    "get_async_session_maker",
    "init_rate_limit_table",
]
