"""Window stores: where rate limit counters live.

Three interchangeable backends share one interface:

- MemoryWindowStore: in-process, per-instance, LRU-capped
- DatabaseWindowStore: the ``rate_limit`` table through SQLAlchemy async
- CacheWindowStore: an external string cache such as Redis
"""

import asyncio
import hashlib
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from redis.exceptions import RedisError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratekeeper.app.core.cache import CacheBackend
from ratekeeper.app.core.logging import get_log_context, get_logger
from ratekeeper.app.db.models import RateLimitRecord
from ratekeeper.app.exceptions import StorageError
from ratekeeper.app.ratelimit.models import WindowEntry

logger = get_logger(__name__)

# Keys longer than this are stored as a prefix plus a sha256 digest. Digested
# keys are always 255 characters, so they never equal a verbatim key.
MAX_STORED_KEY_LENGTH = 200
_DIGEST_PREFIX_LENGTH = 183


def _stored_key(key: str) -> str:
    if len(key) <= MAX_STORED_KEY_LENGTH:
        return key
    key_hash = hashlib.sha256(key.encode()).hexdigest()
    return f"{key[:_DIGEST_PREFIX_LENGTH]}#sha256:{key_hash}"


class WindowStore(ABC):
    """Abstract base class for window stores."""

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[WindowEntry]:
        """Return the entry for key, or None if absent or expired.

        Raises:
            StorageError: If the backend could not be read.
        """

    @abstractmethod
    async def set(
        self,
        key: str,
        entry: WindowEntry,
        is_update: bool = False,
        window_seconds: Optional[int] = None,
    ) -> None:
        """Write the entry for key.

        Args:
            key: Rate limit key
            entry: New window state
            is_update: False on the first write for key, True when
                overwriting an existing entry
            window_seconds: Window of the rule the entry was counted under;
                backends with expiry keep the entry at least this long
        """

    async def cleanup(self, max_age_seconds: int) -> int:
        """Drop entries older than max_age_seconds. Returns number removed."""
        return 0

    async def close(self) -> None:
        """Release backend resources."""


@dataclass
class _MemoryEntry:
    entry: WindowEntry
    expires_at: float


class MemoryWindowStore(WindowStore):
    """In-process window store with lazy expiry.

    Suitable for single-instance deployments; every worker process keeps its
    own counters.

    Memory optimization:
    - Uses OrderedDict for LRU cache behavior
    - Limits max entries to prevent unbounded memory growth
    - cleanup() sweeps expired entries
    """

    name = "memory"
    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        default_window_seconds: int,
        clock: Callable[[], float] = time.time,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        """Initialize the memory store.

        Args:
            default_window_seconds: Expiry applied to every write when the
                caller does not pass a longer window
            clock: Time source returning UNIX time in seconds
            max_entries: Maximum number of entries to store (LRU eviction)
        """
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.default_window_seconds = default_window_seconds
        self._clock = clock
        self._max_entries = max_entries
        self._storage: OrderedDict[str, _MemoryEntry] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._storage)

    async def get(self, key: str) -> Optional[WindowEntry]:
        async with self._lock:
            stored = self._storage.get(key)
            if stored is None:
                return None
            if self._clock() >= stored.expires_at:
                del self._storage[key]
                return None
            return stored.entry

    async def set(
        self,
        key: str,
        entry: WindowEntry,
        is_update: bool = False,
        window_seconds: Optional[int] = None,
    ) -> None:
        ttl = max(window_seconds or 0, self.default_window_seconds)
        async with self._lock:
            self._storage[key] = _MemoryEntry(entry=entry, expires_at=self._clock() + ttl)
            self._storage.move_to_end(key)
            self._enforce_lru_limit()

    def _enforce_lru_limit(self) -> None:
        """Enforce max entries limit using LRU eviction."""
        if len(self._storage) > self._max_entries:
            # Remove oldest 20% of entries
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(min(remove_count, len(self._storage))):
                self._storage.popitem(last=False)

    async def cleanup(self, max_age_seconds: int = 0) -> int:
        async with self._lock:
            now = self._clock()
            expired = [k for k, v in self._storage.items() if now >= v.expires_at]
            for key in expired:
                del self._storage[key]
            return len(expired)


class DatabaseWindowStore(WindowStore):
    """Window store backed by the ``rate_limit`` table.

    Rows never expire on their own; the limiter treats an elapsed window as a
    reset. Keys longer than MAX_STORED_KEY_LENGTH are stored digested so any
    request path fits the ``key`` column. Write failures are logged and swallowed so a database outage
    degrades to admitting traffic.
    """

    name = "durable"

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._session_maker = session_maker
        self._clock = clock

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            from ratekeeper.app.db.async_session import get_async_session_maker

            self._session_maker = get_async_session_maker()
        return self._session_maker

    async def get(self, key: str) -> Optional[WindowEntry]:
        stored_key = _stored_key(key)
        try:
            async with self._sessions()() as session:
                result = await session.execute(
                    select(RateLimitRecord).where(RateLimitRecord.key == stored_key)
                )
                record = result.scalars().first()
        except SQLAlchemyError as e:
            raise StorageError(self.name, str(e)) from e

        if record is None:
            return None
        # BIGINT columns may come back as Decimal or a driver-specific int
        return WindowEntry(
            key=key,
            count=int(record.count),
            window_start=int(record.last_request),
        )

    async def set(
        self,
        key: str,
        entry: WindowEntry,
        is_update: bool = False,
        window_seconds: Optional[int] = None,
    ) -> None:
        stored_key = _stored_key(key)
        try:
            async with self._sessions()() as session:
                if is_update:
                    await session.execute(
                        update(RateLimitRecord)
                        .where(RateLimitRecord.key == stored_key)
                        .values(count=entry.count, last_request=entry.window_start)
                    )
                else:
                    session.add(
                        RateLimitRecord(
                            key=stored_key, count=entry.count, last_request=entry.window_start
                        )
                    )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Error setting rate limit: {e}",
                extra=get_log_context(rate_limit_key=key, storage=self.name),
            )

    async def cleanup(self, max_age_seconds: int) -> int:
        cutoff = int(self._clock() * 1000) - max_age_seconds * 1000
        try:
            async with self._sessions()() as session:
                result = await session.execute(
                    delete(RateLimitRecord).where(RateLimitRecord.last_request < cutoff)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Error cleaning up rate limit rows: {e}",
                extra=get_log_context(storage=self.name),
            )
            return 0
        return result.rowcount or 0


class CacheWindowStore(WindowStore):
    """Window store on an external string cache.

    Entries are stored as JSON with a TTL; the cache does the expiring. An
    unparseable value reads as absent. Without a cache nothing is ever
    stored, so every request is admitted.
    """

    name = "external-cache"

    def __init__(self, cache: Optional[CacheBackend], default_window_seconds: int):
        self._cache = cache
        self.default_window_seconds = default_window_seconds

    @property
    def configured(self) -> bool:
        return self._cache is not None

    async def get(self, key: str) -> Optional[WindowEntry]:
        if self._cache is None:
            return None
        try:
            raw = await self._cache.get(key)
        except (RedisError, OSError) as e:
            raise StorageError(self.name, str(e)) from e

        if not raw or not isinstance(raw, str):
            return None
        try:
            return WindowEntry.from_json(raw)
        except ValueError:
            logger.warning(
                "Discarding unparseable rate limit entry",
                extra=get_log_context(rate_limit_key=key, storage=self.name),
            )
            return None

    async def set(
        self,
        key: str,
        entry: WindowEntry,
        is_update: bool = False,
        window_seconds: Optional[int] = None,
    ) -> None:
        if self._cache is None:
            return
        ttl = max(window_seconds or 0, self.default_window_seconds)
        try:
            await self._cache.set(key, entry.to_json(), ttl)
        except (RedisError, OSError) as e:
            raise StorageError(self.name, str(e)) from e

    async def cleanup(self, max_age_seconds: int = 0) -> int:
        if self._cache is None:
            return 0
        return await self._cache.cleanup_expired()

    async def close(self) -> None:
        if self._cache is not None:
            await self._cache.close()
