"""Fixed-window, per-path rate limiting."""

from ratekeeper.app.ratelimit.factory import (
    create_rate_limiter,
    create_store,
    get_rate_limiter,
    reset_rate_limiter,
)
from ratekeeper.app.ratelimit.identity import Identity, IdentityResolver
from ratekeeper.app.ratelimit.limiter import RateLimiter, RequestContext
from ratekeeper.app.ratelimit.models import (
    CheckRateLimitResponse,
    RateLimitRule,
    WindowEntry,
)
from ratekeeper.app.ratelimit.options import RateLimiterOptions
from ratekeeper.app.ratelimit.patterns import PathPattern, PatternCache, compile_pattern
from ratekeeper.app.ratelimit.rules import RuleResolver
from ratekeeper.app.ratelimit.storage import (
    CacheWindowStore,
    DatabaseWindowStore,
    MemoryWindowStore,
    WindowStore,
)

__all__ = [
    "CacheWindowStore",
    "CheckRateLimitResponse",
    "DatabaseWindowStore",
    "Identity",
    "IdentityResolver",
    "MemoryWindowStore",
    "PathPattern",
    "PatternCache",
    "RateLimitRule",
    "RateLimiter",
    "RateLimiterOptions",
    "RequestContext",
    "RuleResolver",
    "WindowEntry",
    "WindowStore",
    "compile_pattern",
    "create_rate_limiter",
    "create_store",
    "get_rate_limiter",
    "reset_rate_limiter",
]
