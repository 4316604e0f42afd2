"""Per-route request throttling.

RateLimitGuard wraps Starlette/FastAPI endpoint handlers with one or more
policies. Every policy is counted independently; the most restrictive
outcome decides whether the handler runs and which headers are emitted.

Usage:
    >>> from starlette.routing import Route
    >>> from lootaura.rate_limit import Policies, RateLimitGuard, load_config
    >>>
    >>> guard = RateLimitGuard.from_config(load_config())
    >>> routes = [
    ...     Route(
    ...         "/api/sales",
    ...         guard.wrap(list_sales, [Policies.SALES_VIEW_30S, Policies.SALES_VIEW_HOURLY]),
    ...     ),
    ... ]
"""

import inspect
import logging
from functools import wraps
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, Union

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from lootaura.rate_limit.config import RateLimitConfig
from lootaura.rate_limit.exceptions import ConfigError
from lootaura.rate_limit.headers import apply_rate_headers
from lootaura.rate_limit.keys import derive_key
from lootaura.rate_limit.limiter import RateLimiter
from lootaura.rate_limit.policies import Policy, all_policies
from lootaura.rate_limit.result import CheckResult
from lootaura.rate_limit.store import CounterStore, build_counter_store

logger = logging.getLogger(__name__)

Handler = Callable[[Request], Awaitable[Response]]
UserIdSource = Union[
    str,
    Callable[[Request], Optional[str]],
    Callable[[Request], Awaitable[Optional[str]]],
    None,
]
Outcome = Tuple[Policy, CheckResult]

RATE_LIMITED_BODY = {
    "error": "rate_limited",
    "message": "Too many requests. Please slow down.",
}


def select_most_restrictive(outcomes: Sequence[Outcome]) -> Outcome:
    """Pick the outcome that governs the response.

    A blocked result beats any allowed one; among allowed results the
    smallest ``remaining`` wins; ties go to the earliest declared policy.
    """
    if not outcomes:
        raise ConfigError("No rate limit outcomes to select from")

    selected = outcomes[0]
    for outcome in outcomes[1:]:
        current = selected[1]
        candidate = outcome[1]
        if current.allowed and not candidate.allowed:
            selected = outcome
        elif current.allowed == candidate.allowed and candidate.remaining < current.remaining:
            selected = outcome
    return selected


def rate_limited_response(
    policy: Policy, result: CheckResult, now: Optional[float] = None
) -> Response:
    """Build the 429 returned when a request is hard-blocked."""
    response = JSONResponse(status_code=429, content=RATE_LIMITED_BODY)
    return apply_rate_headers(
        response,
        policy,
        result.remaining,
        result.reset_at,
        result.soft_limited,
        now=now,
    )


async def _resolve_user_id(source: UserIdSource, request: Request) -> Optional[str]:
    if source is None or isinstance(source, str):
        return source
    user_id = source(request)
    if inspect.isawaitable(user_id):
        user_id = await user_id
    return user_id


class RateLimitGuard:
    """Evaluates route policies and decorates handler responses.

    The counter store is injected; the guard never builds global state.
    Behavior per request:
    1. If the config or the route bypasses throttling, call the handler
    2. Derive a key and check every policy independently
    3. Select the most restrictive outcome
    4. If blocked: return 429 without calling the handler
    5. Otherwise: call the handler and add rate limit headers

    Example:
        >>> store = CounterStore()
        >>> guard = RateLimitGuard(RateLimitConfig(), store)
        >>> endpoint = guard.wrap(update_profile, [Policies.MUTATE_MINUTE], user_id=current_user_id)
    """

    def __init__(
        self,
        config: RateLimitConfig,
        store: CounterStore,
        limiter: Optional[RateLimiter] = None,
    ):
        """Initialize the guard.

        Args:
            config: Resolved rate limit configuration
            store: Counter store shared by every wrapped route
            limiter: Custom limiter (defaults to RateLimiter over ``store``)
        """
        self.config = config
        self._store = store
        self._limiter = limiter or RateLimiter(store)
        self._recent_blocks = 0

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "RateLimitGuard":
        return cls(config, build_counter_store(config))

    @property
    def store(self) -> CounterStore:
        return self._store

    async def startup(self) -> None:
        await self._store.start()
        logger.info(
            "Rate limiting ready: backend=%s, bypass=%s, environment=%s",
            self._store.backend_name,
            self.config.should_bypass,
            self.config.environment,
        )

    async def shutdown(self) -> None:
        await self._store.close()

    async def evaluate(
        self,
        request: Request,
        policies: Sequence[Policy],
        user_id: Optional[str] = None,
    ) -> Outcome:
        """Check every policy for ``request`` and return the governing one."""
        outcomes: List[Outcome] = []
        for policy in policies:
            key = derive_key(request, policy.scope, user_id)
            outcomes.append((policy, await self._limiter.check(policy, key)))
        return select_most_restrictive(outcomes)

    async def process(
        self,
        request: Request,
        handler: Handler,
        policies: Sequence[Policy],
        user_id: Optional[str] = None,
    ) -> Response:
        """Run ``handler`` under ``policies`` (shared by wrap and middleware)."""
        policy, result = await self.evaluate(request, policies, user_id)

        if not result.allowed:
            self._recent_blocks += 1
            logger.warning(
                "Rate limit exceeded: policy=%s, method=%s, path=%s, reset_at=%d",
                policy.name,
                request.method,
                request.url.path,
                result.reset_at,
            )
            return rate_limited_response(policy, result, now=self._store.now())

        response = await handler(request)
        return apply_rate_headers(
            response,
            policy,
            result.remaining,
            result.reset_at,
            result.soft_limited,
            now=self._store.now(),
        )

    def wrap(
        self,
        handler: Handler,
        policies: Sequence[Policy],
        user_id: UserIdSource = None,
        bypass: bool = False,
    ) -> Handler:
        """Wrap an endpoint handler with rate limiting.

        Args:
            handler: ``async def handler(request) -> Response``
            policies: Policies to enforce, most important first
            user_id: Authenticated user id, or a callable resolving it
                from the request (sync or async)
            bypass: Skip throttling for this route

        Returns:
            Wrapped handler

        Raises:
            ConfigError: If ``policies`` is empty
        """
        policies = tuple(policies)
        if not policies:
            raise ConfigError(f"No rate limit policies given for {handler!r}")

        @wraps(handler)
        async def wrapper(request: Request) -> Response:
            if bypass or self.config.should_bypass:
                return await handler(request)

            resolved = await _resolve_user_id(user_id, request)
            return await self.process(request, handler, policies, resolved)

        return wrapper

    def status(self) -> dict:
        """Summary for the admin diagnostics panel."""
        return {
            "enabled": not self.config.should_bypass,
            "backend": self._store.backend_name,
            "policies": [
                f"{p.name} ({p.limit}/{p.window_seconds}s)" for p in all_policies()
            ],
            "recent_blocks": self._recent_blocks,
        }
