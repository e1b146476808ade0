"""Rate limiting data models.

This module contains the rule model and the dataclasses for window state
and check results.
"""

import json
from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class RateLimitRule(BaseModel):
    """A ``{window, max}`` pair governing one path or the default."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    window_seconds: int = Field(
        gt=0, validation_alias=AliasChoices("window_seconds", "window")
    )
    max_requests: int = Field(
        gt=0, validation_alias=AliasChoices("max_requests", "max")
    )

    @property
    def window_ms(self) -> int:
        return self.window_seconds * 1000


# A custom rule value: an override, or False to disable limiting for the path.
RuleValue = Union[RateLimitRule, Literal[False]]


@dataclass
class WindowEntry:
    """State of one fixed window for one rate limit key.

    ``window_start`` (ms since epoch) is when the first request of the live
    window was admitted; it does not move while the window is live.
    """
    key: str
    count: int
    window_start: int

    def to_json(self) -> str:
        return json.dumps(
            {"key": self.key, "count": self.count, "lastRequest": self.window_start}
        )

    @classmethod
    def from_json(cls, raw: str) -> "WindowEntry":
        """Parse an entry written by to_json.

        Raises:
            ValueError: If raw is not a serialized entry.
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("window entry must be a JSON object")
        try:
            return cls(
                key=str(data["key"]),
                count=int(data["count"]),
                window_start=int(data["lastRequest"]),
            )
        except (KeyError, TypeError, OverflowError) as e:
            raise ValueError(f"malformed window entry: {e}") from e


@dataclass
class CheckRateLimitResponse:
    """Result of an admission check."""
    success: bool
    limit: int
    remaining: int
    retry_after: Optional[int] = None
    reset_at: Optional[int] = None
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Render the wire shape, omitting fields that were not produced."""
        data: dict[str, Any] = {
            "success": self.success,
            "limit": self.limit,
            "remaining": self.remaining,
        }
        if self.retry_after is not None:
            data["retryAfter"] = self.retry_after
        if self.reset_at is not None:
            data["resetAt"] = self.reset_at
        if self.message is not None:
            data["message"] = self.message
        return data
