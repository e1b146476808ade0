"""Rate limiting middleware.

Applies RateLimiter decisions to HTTP traffic: rejected requests get a JSON
429 with ``Retry-After``, and every accounted response carries the
``X-RateLimit-*`` headers.
"""

import functools
import math
from typing import Awaitable, Callable, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ratekeeper.app.core.config import settings
from ratekeeper.app.core.logging import get_log_context, get_logger
from ratekeeper.app.exceptions import RATE_LIMITED_MESSAGE, RateLimitExceededError
from ratekeeper.app.ratelimit.factory import get_rate_limiter
from ratekeeper.app.ratelimit.limiter import RateLimiter, RequestContext
from ratekeeper.app.ratelimit.models import CheckRateLimitResponse

logger = get_logger(__name__)

# Resolves the authenticated user id for a request, or None if anonymous.
RequestUserIdLoader = Callable[[Request], Awaitable[Optional[str]]]


def rate_limit_headers(result: CheckRateLimitResponse) -> Dict[str, str]:
    """Build X-RateLimit-* (and Retry-After) headers for a decision.

    Decisions that did no accounting (disabled path, no identity) produce no
    headers.
    """
    if result.reset_at is None:
        return {}
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_at / 1000)),
    }
    if not result.success and result.retry_after is not None:
        headers["Retry-After"] = str(result.retry_after)
    return headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limits on requests.

    The rule table is matched against ``request.url.path``. Identity comes
    from the client address (or the first ``X-Forwarded-For`` hop when
    trusted) and, for user detection, from ``user_id_loader``.
    """

    def __init__(
        self,
        app,
        limiter: Optional[RateLimiter] = None,
        user_id_loader: Optional[RequestUserIdLoader] = None,
        trust_forwarded_for: Optional[bool] = None,
    ):
        super().__init__(app)
        self._limiter = limiter
        self._user_id_loader = user_id_loader
        self._trust_forwarded_for = (
            settings.rate_limit_trust_forwarded_for
            if trust_forwarded_for is None
            else trust_forwarded_for
        )

    @property
    def limiter(self) -> RateLimiter:
        if self._limiter is None:
            self._limiter = get_rate_limiter()
        return self._limiter

    def _get_client_ip(self, request: Request) -> Optional[str]:
        if self._trust_forwarded_for:
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                first_hop = forwarded.split(",")[0].strip()
                if first_hop:
                    return first_hop
        return request.client.host if request.client else None

    def _build_context(self, request: Request) -> RequestContext:
        loader = None
        if self._user_id_loader is not None:
            loader = functools.partial(self._user_id_loader, request)
        return RequestContext(
            client_ip=self._get_client_ip(request), user_id_loader=loader
        )

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        if not settings.rate_limit_enabled:
            return await call_next(request)

        path = request.url.path
        context = self._build_context(request)
        result = await self.limiter.check(path, context)
        headers = rate_limit_headers(result)

        if not result.success:
            error = RateLimitExceededError(
                limit=result.limit,
                retry_after=result.retry_after or 1,
                reset_at=result.reset_at,
                message=result.message or RATE_LIMITED_MESSAGE,
            )
            logger.warning(
                "Request rejected by rate limiter",
                extra=get_log_context(
                    path=path, client_ip=context.client_ip, limit=result.limit
                ),
            )
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response(),
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
