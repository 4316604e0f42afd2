"""Admission decisions for a single policy."""

import logging

from lootaura.rate_limit.policies import Policy
from lootaura.rate_limit.result import CheckResult
from lootaura.rate_limit.store import CounterStore

logger = logging.getLogger(__name__)


class RateLimiter:
    """Checks a derived key against a policy using the counter store.

    Requests over ``policy.limit`` may still pass through the soft grace
    window: a second, shorter counter that tolerates up to
    ``policy.burst_soft`` extra requests before hard-blocking.

    Example:
        >>> limiter = RateLimiter(CounterStore())
        >>> result = await limiter.check(Policies.AUTH_DEFAULT, "ip:1.2.3.4:POST:/api/auth")
        >>> result.remaining
        4
    """

    def __init__(self, store: CounterStore):
        self._store = store

    @property
    def store(self) -> CounterStore:
        return self._store

    async def check(self, policy: Policy, key: str) -> CheckResult:
        window_key = f"{key}:{policy.name}"
        window = await self._store.increment_and_get(window_key, policy.window_seconds)

        if window.count <= policy.limit:
            return CheckResult(
                allowed=True,
                soft_limited=False,
                remaining=policy.limit - window.count,
                reset_at=window.reset_at,
            )

        if policy.has_soft_grace:
            soft = await self._store.increment_and_get(
                f"{window_key}:soft", policy.soft_window_seconds
            )
            if soft.count <= policy.burst_soft:
                logger.debug(
                    "Soft limit grace: key=%s, policy=%s, soft_count=%d",
                    key,
                    policy.name,
                    soft.count,
                )
                return CheckResult(
                    allowed=True,
                    soft_limited=True,
                    remaining=0,
                    reset_at=window.reset_at,
                )

        return CheckResult(
            allowed=False,
            soft_limited=False,
            remaining=0,
            reset_at=window.reset_at,
        )
