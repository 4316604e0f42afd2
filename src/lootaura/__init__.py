"""LootAura - yard-sale marketplace services.

Currently ships the request throttling engine used by the marketplace API.

Usage:
    from lootaura.rate_limit import Policies, RateLimitGuard, load_config

    guard = RateLimitGuard.from_config(load_config())
    endpoint = guard.wrap(list_sales, [Policies.SALES_VIEW_30S])
"""

__version__ = "0.4.0"
__all__ = ["__version__"]
