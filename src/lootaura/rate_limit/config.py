"""Rate limiting configuration.

Provides the RateLimitConfig dataclass handed to the counter store and the
request guard, and RateLimitSettings, which resolves it from the process
environment once at startup.
"""

from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION = "production"


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting.

    Attributes:
        enabled: Master switch; when False every request bypasses throttling
        environment: Deployment environment name (default: "production")
        bypass_non_production: Bypass throttling outside production,
            including preview deployments (default: True)
        redis_url: Distributed counter endpoint; None keeps counters in-process
        redis_token: Credential for the counter endpoint (sent as password)
        redis_key_prefix: Prefix for Redis keys (default: "lootaura:rl:")
        redis_connection_pool_size: Redis connection pool size (default: 50)
        redis_timeout_seconds: Per-call Redis timeout (default: 2.0)
        sweep_interval_seconds: Fallback map sweep period (default: 300)
        max_entries: Hard cap on fallback map entries (default: 10,000)

    Example:
        >>> config = RateLimitConfig(
        ...     environment="production",
        ...     redis_url="rediss://example.upstash.io:6379",
        ...     redis_token="secret",
        ... )
        >>> config.backend
        'redis'
    """

    enabled: bool = True
    environment: str = PRODUCTION
    bypass_non_production: bool = True

    # Distributed backend
    redis_url: Optional[str] = None
    redis_token: Optional[str] = None
    redis_key_prefix: str = "lootaura:rl:"
    redis_connection_pool_size: int = 50
    redis_timeout_seconds: float = 2.0

    # In-process fallback
    sweep_interval_seconds: float = 300.0
    max_entries: int = 10_000

    def __post_init__(self):
        """Validate configuration."""
        if self.redis_timeout_seconds <= 0:
            raise ValueError("redis_timeout_seconds must be positive")
        if self.redis_connection_pool_size <= 0:
            raise ValueError("redis_connection_pool_size must be positive")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        if self.max_entries <= 0:
            raise ValueError("max_entries must be positive")

    @property
    def backend(self) -> Literal["memory", "redis"]:
        return "redis" if self.redis_url else "memory"

    @property
    def should_bypass(self) -> bool:
        """True when throttling is off for the whole process."""
        if not self.enabled:
            return True
        return self.bypass_non_production and self.environment != PRODUCTION


class RateLimitSettings(BaseSettings):
    """Environment-backed settings.

    Only read through load_config(); the engine itself never touches the
    environment.
    """

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    enabled: bool = Field(default=False, validation_alias="RATE_LIMITING_ENABLED")
    environment: str = Field(default="development", validation_alias="APP_ENV")
    redis_url: Optional[str] = Field(default=None, validation_alias="RATE_LIMIT_REDIS_URL")
    redis_token: Optional[str] = Field(
        default=None, validation_alias="RATE_LIMIT_REDIS_TOKEN"
    )
    redis_timeout_seconds: float = Field(
        default=2.0, validation_alias="RATE_LIMIT_REDIS_TIMEOUT_SECONDS"
    )
    max_entries: int = Field(default=10_000, validation_alias="RATE_LIMIT_MAX_ENTRIES")

    def to_config(self) -> RateLimitConfig:
        return RateLimitConfig(
            enabled=self.enabled,
            environment=self.environment.strip().lower(),
            redis_url=self.redis_url or None,
            redis_token=self.redis_token or None,
            redis_timeout_seconds=self.redis_timeout_seconds,
            max_entries=self.max_entries,
        )


def load_config() -> RateLimitConfig:
    """Resolve RateLimitConfig from the environment (call once at startup)."""
    return RateLimitSettings().to_config()
