"""Custom exceptions for the rate limiter."""

RATE_LIMITED_MESSAGE = "Too many requests. Please try again later."


class RateLimiterError(Exception):
    """Base class for rate limiter exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Rate limiter error"):
        self.message = message
        super().__init__(message)


class ConfigurationError(RateLimiterError):
    """Raised when the limiter is configured inconsistently.

    The limiter logs this at startup instead of refusing to run.
    """

    def __init__(self, message: str = "Invalid rate limiter configuration"):
        super().__init__(message)


class StorageError(RateLimiterError):
    """Raised by a window store when its backend cannot be read.

    Maps to HTTP 503, although the limiter never lets it reach a caller:
    storage failures fail open.
    """
    status_code = 503

    def __init__(self, backend: str, detail: str = "storage backend failure"):
        self.backend = backend
        super().__init__(f"{backend}: {detail}")


class RateLimitExceededError(RateLimiterError):
    """Raised at the HTTP boundary when a request was rejected.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(
        self,
        limit: int,
        retry_after: int,
        reset_at: int | None = None,
        message: str = RATE_LIMITED_MESSAGE,
    ):
        self.limit = limit
        self.retry_after = retry_after
        self.reset_at = reset_at
        super().__init__(message)

    def to_response(self) -> dict:
        """Convert to the JSON body returned with a 429."""
        return {
            "error": "rate_limit_exceeded",
            "error_code": "RATE_LIMITED",
            "message": self.message,
            "limit": self.limit,
            "retry_after": self.retry_after,
        }
