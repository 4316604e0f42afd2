"""Rate limiting exceptions for the LootAura throttling engine."""

from __future__ import annotations


class RateLimitError(Exception):
    """Base class for rate limiting errors."""

    detail: str = "Rate limiting error"

    def __init__(self, detail: str | None = None):
        if detail:
            self.detail = detail
        super().__init__(self.detail)


class ConfigError(RateLimitError):
    """Misconfigured deployment (unknown policy, empty policy list).

    Raised at startup or wrap time and never caught by the engine.
    """

    detail = "Invalid rate limit configuration"


class BackendError(RateLimitError):
    """Distributed counter backend returned an unusable reply."""

    detail = "Rate limit backend error"
