"""Middleware package for the rate limiter."""

from ratekeeper.app.middleware.rate_limit import RateLimitMiddleware, rate_limit_headers

__all__ = [
    "RateLimitMiddleware",
    "rate_limit_headers",
]
