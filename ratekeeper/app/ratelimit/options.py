"""Construction-time options for a rate limiter."""

from pydantic import BaseModel, ConfigDict, Field

from ratekeeper.app.core.config import DetectionMode, StorageBackendName
from ratekeeper.app.ratelimit.models import RateLimitRule, RuleValue


class RateLimiterOptions(BaseModel):
    """Options consumed when building a RateLimiter.

    ``custom_rules`` keys are path patterns (``*`` and ``**`` wildcards);
    values are a rule override or ``False`` to disable limiting. Declaration
    order is match priority.

    Example:
        >>> RateLimiterOptions(custom_rules={
        ...     "/api/ai/*": {"window": 60, "max": 10},
        ...     "/api/health": False,
        ... })
    """

    model_config = ConfigDict(frozen=True)

    window_seconds: int = Field(default=60, gt=0)
    max_requests: int = Field(default=100, gt=0)
    storage: StorageBackendName = "memory"
    detection: DetectionMode = "ip"
    custom_rules: dict[str, RuleValue] = Field(default_factory=dict)

    @property
    def default_rule(self) -> RateLimitRule:
        return RateLimitRule(
            window_seconds=self.window_seconds, max_requests=self.max_requests
        )
