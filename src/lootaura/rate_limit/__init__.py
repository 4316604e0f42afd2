"""LootAura Rate Limiting Package.

Multi-policy fixed window throttling with a Redis counter backend, an
in-process fallback, soft-then-hard admission and standard
X-RateLimit-* response headers.

Usage:
    >>> from lootaura.rate_limit import Policies, RateLimitGuard, load_config
    >>>
    >>> guard = RateLimitGuard.from_config(load_config())
    >>> await guard.startup()
    >>> endpoint = guard.wrap(
    ...     update_profile,
    ...     [Policies.MUTATE_MINUTE, Policies.MUTATE_DAILY],
    ...     user_id=current_user_id,
    ... )
"""

from lootaura.rate_limit.backends.base import CounterBackend
from lootaura.rate_limit.backends.memory import InMemoryCounter
from lootaura.rate_limit.config import RateLimitConfig, RateLimitSettings, load_config
from lootaura.rate_limit.exceptions import BackendError, ConfigError, RateLimitError
from lootaura.rate_limit.guard import (
    RateLimitGuard,
    rate_limited_response,
    select_most_restrictive,
)
from lootaura.rate_limit.headers import apply_rate_headers, rate_limit_headers
from lootaura.rate_limit.keys import derive_key, get_client_ip
from lootaura.rate_limit.limiter import RateLimiter
from lootaura.rate_limit.middleware import RateLimitMiddleware
from lootaura.rate_limit.policies import Policies, Policy, Scope, all_policies, lookup
from lootaura.rate_limit.result import CheckResult, WindowCount
from lootaura.rate_limit.store import CounterStore, build_counter_store

__all__ = [
    # Policies
    "Policies",
    "Policy",
    "Scope",
    "lookup",
    "all_policies",
    # Configuration
    "RateLimitConfig",
    "RateLimitSettings",
    "load_config",
    # Engine
    "CounterBackend",
    "InMemoryCounter",
    "CounterStore",
    "build_counter_store",
    "RateLimiter",
    "CheckResult",
    "WindowCount",
    "derive_key",
    "get_client_ip",
    "rate_limit_headers",
    "apply_rate_headers",
    # HTTP
    "RateLimitGuard",
    "RateLimitMiddleware",
    "rate_limited_response",
    "select_most_restrictive",
    # Exceptions
    "RateLimitError",
    "ConfigError",
    "BackendError",
]
