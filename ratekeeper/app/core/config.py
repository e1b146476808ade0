import json
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

StorageBackendName = Literal["memory", "durable", "external-cache"]
DetectionMode = Literal["ip", "user", "ip-and-user"]


def _parse_custom_rules(raw: Any) -> dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw

    raw = str(raw).strip()
    if not raw or raw == "{}":
        return {}

    # json.loads keeps object key order, which is the rule match priority.
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"RATE_LIMIT_CUSTOM_RULES must be a JSON object: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError("RATE_LIMIT_CUSTOM_RULES must be a JSON object")
    return parsed


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # PostgreSQL settings (durable storage backend)
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "ratekeeper"
    db_password: str = "ratekeeper"
    db_name: str = "ratekeeper"

    # Connection pool settings
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_timeout: int = 30  # Seconds to wait for a pooled connection
    db_pool_recycle: int = 300
    db_pool_pre_ping: bool = True
    db_command_timeout: float = 5.0  # Per-command timeout in seconds

    # Explicit DATABASE_URL (takes priority over db_* settings)
    database_url_override: str = Field(default="", validation_alias="DATABASE_URL")

    @property
    def database_url(self) -> str:
        """Build database connection URL.

        Priority:
        1. database_url_override (from DATABASE_URL env var or .env file)
        2. Built from db_* settings
        """
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}@"
            f"{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # Rate limiting settings
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 60
    rate_limit_max_requests: int = 100
    rate_limit_storage: StorageBackendName = "memory"
    rate_limit_detection: DetectionMode = "ip"
    # NoDecode so malformed JSON is reported by decode_custom_rules.
    rate_limit_custom_rules: Annotated[dict[str, Any], NoDecode] = {}
    rate_limit_storage_timeout_seconds: float = 2.0
    rate_limit_memory_max_entries: int = 10000
    rate_limit_trust_forwarded_for: bool = False  # Only behind a trusted proxy

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Redis settings (external-cache storage backend)
    redis_url: str = ""
    redis_socket_timeout: float = 2.0

    @field_validator("rate_limit_custom_rules", mode="before")
    @classmethod
    def decode_custom_rules(cls, v: Any) -> dict[str, Any]:
        return _parse_custom_rules(v)

    @field_validator(
        "rate_limit_window_seconds",
        "rate_limit_max_requests",
        "rate_limit_memory_max_entries",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("rate_limit_storage_timeout_seconds", "redis_socket_timeout")
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("db_pool_size", "db_max_overflow")
    @classmethod
    def validate_pool_size_positive(cls, v: int) -> int:
        """Validate pool_size is positive."""
        if v < 1:
            raise ValueError("pool size values must be at least 1")
        return v

    def rate_limiter_options(self):
        """Build RateLimiterOptions from the rate_limit_* settings."""
        from ratekeeper.app.ratelimit.options import RateLimiterOptions

        return RateLimiterOptions(
            window_seconds=self.rate_limit_window_seconds,
            max_requests=self.rate_limit_max_requests,
            storage=self.rate_limit_storage,
            detection=self.rate_limit_detection,
            custom_rules=self.rate_limit_custom_rules,
        )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
