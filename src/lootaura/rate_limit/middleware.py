"""Rate limiting middleware for FastAPI/Starlette.

Applies policies by path pattern for apps that prefer one central table
over wrapping each endpoint. Admission semantics match RateLimitGuard.wrap.
"""

import fnmatch
import logging
from typing import Callable, Dict, List, Optional, Sequence

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from lootaura.rate_limit.exceptions import ConfigError
from lootaura.rate_limit.guard import RateLimitGuard
from lootaura.rate_limit.policies import Policy

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware applying route-pattern policies.

    Middleware behavior:
    1. Match the path against route_policies (first match wins)
    2. No match, or a None entry: pass through untouched
    3. Resolve the user id (request.state.user set by the auth layer)
    4. Evaluate policies through the guard
    5. Blocked: 429; allowed: call the app and add headers

    Example:
        >>> from fastapi import FastAPI
        >>> from lootaura.rate_limit import Policies, RateLimitGuard, RateLimitMiddleware
        >>>
        >>> app = FastAPI()
        >>> app.add_middleware(
        ...     RateLimitMiddleware,
        ...     guard=guard,
        ...     route_policies={
        ...         "/api/geocoding/zip": [Policies.GEO_ZIP_SHORT, Policies.GEO_ZIP_HOURLY],
        ...         "/api/admin/*": [Policies.ADMIN_TOOLS, Policies.ADMIN_HOURLY],
        ...         "/api/health": None,
        ...     },
        ... )
    """

    def __init__(
        self,
        app,
        guard: RateLimitGuard,
        route_policies: Dict[str, Optional[Sequence[Policy]]],
        user_id_extractor: Optional[Callable[[Request], Optional[str]]] = None,
    ):
        """Initialize rate limit middleware.

        Args:
            app: FastAPI/Starlette application
            guard: Shared request guard
            route_policies: Path pattern -> policies, or None to exempt
            user_id_extractor: Custom function to extract the user id

        Raises:
            ConfigError: If a pattern maps to an empty policy list
        """
        super().__init__(app)
        for pattern, policies in route_policies.items():
            if policies is not None and not policies:
                raise ConfigError(f"Empty policy list for route pattern {pattern}")

        self.guard = guard
        self.route_policies = {
            pattern: (tuple(policies) if policies is not None else None)
            for pattern, policies in route_policies.items()
        }
        self._user_id_extractor = user_id_extractor or self._default_user_id_extractor

    @staticmethod
    def _default_user_id_extractor(request: Request) -> Optional[str]:
        """Read user_id from request.state.user (set by auth middleware)."""
        user = getattr(request.state, "user", None)
        user_id = getattr(user, "user_id", None) if user else None
        return str(user_id) if user_id else None

    def _get_route_policies(self, path: str) -> Optional[List[Policy]]:
        """Policies for ``path``, or None when the route is not throttled."""
        for pattern, policies in self.route_policies.items():
            if fnmatch.fnmatch(path, pattern):
                return list(policies) if policies is not None else None
        return None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with rate limiting."""
        if self.guard.config.should_bypass:
            return await call_next(request)

        policies = self._get_route_policies(request.url.path)
        if policies is None:
            return await call_next(request)

        return await self.guard.process(
            request,
            call_next,
            policies,
            user_id=self._user_id_extractor(request),
        )
