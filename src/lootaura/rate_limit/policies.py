"""Named throttle policies.

Policies are immutable and registered at import time. Routes reference them
through the ``Policies`` namespace, so an unknown name is a deployment error
rather than something to recover from at request time.

Usage:
    >>> from lootaura.rate_limit.policies import Policies, lookup
    >>> Policies.AUTH_DEFAULT.describe()
    'AUTH_DEFAULT 5/30'
    >>> lookup("MUTATE_MINUTE").scope
    <Scope.USER: 'user'>
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from lootaura.rate_limit.exceptions import ConfigError


class Scope(str, Enum):
    """Dimension used to isolate counters for a policy."""

    IP = "ip"
    USER = "user"
    # Always keyed by IP, even for signed-in callers (auth endpoints)
    IP_AUTH = "ip-auth"


@dataclass(frozen=True)
class Policy:
    """Immutable throttle configuration.

    Attributes:
        name: Registry name, also used in counter keys and headers
        limit: Requests allowed per window
        window_seconds: Fixed window length in seconds
        scope: How the request identity is derived
        burst_soft: Overage requests tolerated inside the soft window
        soft_window_seconds: Length of the soft grace window
    """

    name: str
    limit: int
    window_seconds: int
    scope: Scope = Scope.IP
    burst_soft: Optional[int] = None
    soft_window_seconds: Optional[int] = None

    def __post_init__(self):
        """Validate policy values."""
        if self.limit <= 0:
            raise ConfigError(f"Policy {self.name}: limit must be positive")
        if self.window_seconds <= 0:
            raise ConfigError(f"Policy {self.name}: window_seconds must be positive")
        if self.burst_soft is not None and self.burst_soft < 0:
            raise ConfigError(f"Policy {self.name}: burst_soft cannot be negative")
        if self.soft_window_seconds is not None and self.soft_window_seconds <= 0:
            raise ConfigError(
                f"Policy {self.name}: soft_window_seconds must be positive"
            )

    @property
    def has_soft_grace(self) -> bool:
        """Soft grace needs both fields; a half-configured pair disables it."""
        return self.burst_soft is not None and self.soft_window_seconds is not None

    def describe(self) -> str:
        return f"{self.name} {self.limit}/{self.window_seconds}"


class Policies:
    """Built-in marketplace policies."""

    # Authentication
    AUTH_DEFAULT = Policy("AUTH_DEFAULT", 5, 30, Scope.IP_AUTH)
    AUTH_HOURLY = Policy("AUTH_HOURLY", 60, 3600, Scope.IP_AUTH)
    AUTH_CALLBACK = Policy("AUTH_CALLBACK", 10, 60, Scope.IP_AUTH)

    # Geocoding
    GEO_ZIP_SHORT = Policy("GEO_ZIP_SHORT", 10, 60, Scope.IP)
    GEO_ZIP_HOURLY = Policy("GEO_ZIP_HOURLY", 300, 3600, Scope.IP)
    GEO_SUGGEST_SHORT = Policy("GEO_SUGGEST_SHORT", 60, 60, Scope.IP)
    GEO_REVERSE_SHORT = Policy("GEO_REVERSE_SHORT", 10, 60, Scope.IP)
    GEO_OVERPASS_SHORT = Policy("GEO_OVERPASS_SHORT", 10, 60, Scope.IP)

    # Sales viewport (map panning fires short bursts)
    SALES_VIEW_30S = Policy(
        "SALES_VIEW_30S",
        20,
        30,
        Scope.IP,
        burst_soft=2,
        soft_window_seconds=5,
    )
    SALES_VIEW_HOURLY = Policy("SALES_VIEW_HOURLY", 800, 3600, Scope.IP)

    # Mutations
    MUTATE_MINUTE = Policy("MUTATE_MINUTE", 3, 60, Scope.USER)
    MUTATE_DAILY = Policy("MUTATE_DAILY", 100, 86400, Scope.USER)
    DRAFT_AUTOSAVE_MINUTE = Policy("DRAFT_AUTOSAVE_MINUTE", 20, 60, Scope.USER)
    REPORT_SALE = Policy("REPORT_SALE", 5, 3600, Scope.USER)
    ACCOUNT_DELETION = Policy("ACCOUNT_DELETION", 3, 86400, Scope.USER)

    # Admin tools
    ADMIN_TOOLS = Policy("ADMIN_TOOLS", 3, 30, Scope.USER)
    ADMIN_HOURLY = Policy("ADMIN_HOURLY", 60, 3600, Scope.USER)


_REGISTRY: Dict[str, Policy] = {
    value.name: value for value in vars(Policies).values() if isinstance(value, Policy)
}


def lookup(name: str) -> Policy:
    """Return the registered policy called ``name``.

    Raises:
        ConfigError: If no policy is registered under that name
    """
    try:
        return _REGISTRY[name]
    except KeyError:
        raise ConfigError(f"Unknown rate limit policy: {name}") from None


def all_policies() -> List[Policy]:
    """Registered policies in declaration order."""
    return list(_REGISTRY.values())
