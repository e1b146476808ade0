"""Fixed-window rate limit decisions.

The limiter is stateless between calls: every check reads the window entry,
decides, and writes it back, so the store is the single source of truth.

Per request:
- rule disabled for the path: admitted, ``limit=0, remaining=0``
- no identity: admitted with the full quota, nothing stored
- no entry, or the window has elapsed: a new window starts (count 1)
- live window at or over the limit: rejected, store untouched
- live window under the limit: count + 1, window start unchanged

Storage failures and timeouts read as "no entry" and never raise.
"""

import asyncio
import dataclasses
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ratekeeper.app.core.logging import get_log_context, get_logger
from ratekeeper.app.exceptions import RATE_LIMITED_MESSAGE, StorageError
from ratekeeper.app.ratelimit.identity import IdentityResolver, UserIdLoader
from ratekeeper.app.ratelimit.models import (
    CheckRateLimitResponse,
    RateLimitRule,
    WindowEntry,
)
from ratekeeper.app.ratelimit.options import RateLimiterOptions
from ratekeeper.app.ratelimit.rules import RuleResolver
from ratekeeper.app.ratelimit.storage import WindowStore

logger = get_logger(__name__)

DEFAULT_STORAGE_TIMEOUT_SECONDS = 2.0


@dataclass(frozen=True)
class RequestContext:
    """Ambient request signals supplied by the embedding pipeline."""
    client_ip: Optional[str] = None
    user_id_loader: Optional[UserIdLoader] = None


class RateLimiter:
    """Admission checks for one configured rule table and store."""

    def __init__(
        self,
        options: RateLimiterOptions,
        store: WindowStore,
        *,
        clock: Callable[[], float] = time.time,
        storage_timeout: float = DEFAULT_STORAGE_TIMEOUT_SECONDS,
    ):
        """Initialize the limiter.

        Args:
            options: Default rule, detection mode and custom rules
            store: Window store holding the counters
            clock: Time source returning UNIX time in seconds
            storage_timeout: Upper bound in seconds for each store call
        """
        self.options = options
        self.store = store
        self.rules = RuleResolver(options.custom_rules)
        self.identities = IdentityResolver(options.detection)
        self.default_rule = options.default_rule
        self._clock = clock
        self._storage_timeout = storage_timeout

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def check(
        self, path: str, context: Optional[RequestContext] = None
    ) -> CheckRateLimitResponse:
        """Decide whether a request to path is admitted, and account for it.

        Args:
            path: Request path the rule table is matched against
            context: Client IP and session lookup for identity resolution

        Returns:
            CheckRateLimitResponse; ``success=False`` means rejected
        """
        context = context or RequestContext()

        rule = self.rules.rule_for(path, self.default_rule)
        if rule is False:
            return CheckRateLimitResponse(success=True, limit=0, remaining=0)

        identity = await self.identities.resolve(
            context.client_ip, context.user_id_loader
        )
        if identity is None:
            return CheckRateLimitResponse(
                success=True, limit=rule.max_requests, remaining=rule.max_requests
            )

        key = identity.key_for(path)
        entry = await self._read(key)
        now = self._now_ms()
        window_ms = rule.window_ms

        if entry is None:
            await self._write(key, WindowEntry(key, 1, now), rule, is_update=False)
            return self._admitted(rule, count=1, reset_at=now + window_ms)

        if now - entry.window_start >= window_ms:
            await self._write(key, WindowEntry(key, 1, now), rule, is_update=True)
            return self._admitted(rule, count=1, reset_at=now + window_ms)

        reset_at = entry.window_start + window_ms
        if entry.count >= rule.max_requests:
            retry_after = math.ceil((reset_at - now) / 1000)
            logger.info(
                "Rate limit exceeded",
                extra=get_log_context(
                    rate_limit_key=key,
                    path=path,
                    storage=self.store.name,
                    limit=rule.max_requests,
                    retry_after=retry_after,
                ),
            )
            return CheckRateLimitResponse(
                success=False,
                limit=rule.max_requests,
                remaining=0,
                retry_after=retry_after,
                reset_at=reset_at,
                message=RATE_LIMITED_MESSAGE,
            )

        updated = dataclasses.replace(entry, count=entry.count + 1)
        await self._write(key, updated, rule, is_update=True)
        return self._admitted(rule, count=updated.count, reset_at=reset_at)

    @staticmethod
    def _admitted(
        rule: RateLimitRule, count: int, reset_at: int
    ) -> CheckRateLimitResponse:
        return CheckRateLimitResponse(
            success=True,
            limit=rule.max_requests,
            remaining=max(0, rule.max_requests - count),
            reset_at=reset_at,
        )

    async def _read(self, key: str) -> Optional[WindowEntry]:
        try:
            return await asyncio.wait_for(
                self.store.get(key), timeout=self._storage_timeout
            )
        except StorageError as e:
            logger.error(
                f"Rate limit storage read failed, allowing request: {e}",
                extra=get_log_context(rate_limit_key=key, storage=self.store.name),
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Rate limit storage read timed out after {self._storage_timeout}s, "
                "allowing request",
                extra=get_log_context(rate_limit_key=key, storage=self.store.name),
            )
        except Exception as e:
            logger.exception(f"Unexpected rate limit storage error: {e}")
        return None

    async def _write(
        self, key: str, entry: WindowEntry, rule: RateLimitRule, is_update: bool
    ) -> None:
        try:
            await asyncio.wait_for(
                self.store.set(
                    key, entry, is_update=is_update, window_seconds=rule.window_seconds
                ),
                timeout=self._storage_timeout,
            )
        except StorageError as e:
            logger.error(
                f"Rate limit storage write failed: {e}",
                extra=get_log_context(rate_limit_key=key, storage=self.store.name),
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Rate limit storage write timed out after {self._storage_timeout}s",
                extra=get_log_context(rate_limit_key=key, storage=self.store.name),
            )
        except Exception as e:
            logger.exception(f"Unexpected rate limit storage error: {e}")

    async def cleanup(self) -> int:
        """Drop stored windows older than the longest configured window."""
        return await self.store.cleanup(self.rules.max_window_seconds(self.default_rule))

    async def close(self) -> None:
        await self.store.close()
