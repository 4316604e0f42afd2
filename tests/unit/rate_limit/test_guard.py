"""Unit tests for RateLimitGuard and most-restrictive selection."""

import json

import pytest
from lootaura.rate_limit.config import RateLimitConfig
from lootaura.rate_limit.exceptions import ConfigError
from lootaura.rate_limit.guard import (
    RATE_LIMITED_BODY,
    RateLimitGuard,
    rate_limited_response,
    select_most_restrictive,
)
from lootaura.rate_limit.policies import Policies, Policy, Scope
from lootaura.rate_limit.result import CheckResult
from lootaura.rate_limit.store import CounterStore
from starlette.requests import Request
from starlette.responses import JSONResponse

A = Policy("A", 20, 30)
B = Policy("B", 800, 3600)
C = Policy("C", 10, 60)


def allowed(remaining):
    return CheckResult(allowed=True, soft_limited=False, remaining=remaining, reset_at=100)


def blocked():
    return CheckResult(allowed=False, soft_limited=False, remaining=0, reset_at=100)


def make_request(method="GET", path="/api/x", ip="1.2.3.4"):
    return Request(
        {
            "type": "http",
            "method": method,
            "scheme": "http",
            "server": ("testserver", 80),
            "path": path,
            "query_string": b"",
            "headers": [(b"x-forwarded-for", ip.encode())],
        }
    )


@pytest.fixture
def guard(clock):
    return RateLimitGuard(RateLimitConfig(), CounterStore(clock=clock))


# =============================================================================
# Tests: Most-Restrictive Selection
# =============================================================================


class TestSelectMostRestrictive:
    """Test combining outcomes across policies."""

    def test_blocked_beats_allowed(self):
        """A blocked result wins over any allowed result."""
        outcomes = [(A, allowed(0)), (B, blocked()), (C, allowed(5))]
        assert select_most_restrictive(outcomes)[0] is B

    def test_smallest_remaining_among_allowed(self):
        """Among allowed results the smallest remaining wins."""
        outcomes = [(A, allowed(9)), (B, allowed(3)), (C, allowed(5))]
        assert select_most_restrictive(outcomes)[0] is B

    def test_earliest_wins_ties(self):
        """Exact ties go to the earliest declared policy."""
        assert select_most_restrictive([(A, allowed(3)), (B, allowed(3))])[0] is A
        assert select_most_restrictive([(A, blocked()), (B, blocked())])[0] is A

    def test_single_outcome(self):
        """A single outcome is returned as-is."""
        outcome = (A, allowed(1))
        assert select_most_restrictive([outcome]) is outcome

    def test_empty_raises(self):
        """No outcomes is a programming error."""
        with pytest.raises(ConfigError):
            select_most_restrictive([])


# =============================================================================
# Tests: 429 Response
# =============================================================================


class TestRateLimitedResponse:
    """Test the hard-block response."""

    def test_body_and_headers(self):
        """429 carries the standard body and Retry-After."""
        response = rate_limited_response(Policies.AUTH_DEFAULT, blocked(), now=70)
        assert response.status_code == 429
        assert json.loads(response.body) == RATE_LIMITED_BODY
        assert response.headers["Retry-After"] == "30"
        assert response.headers["X-RateLimit-Policy"] == "AUTH_DEFAULT 5/30"


# =============================================================================
# Tests: wrap()
# =============================================================================


class TestGuardWrap:
    """Test handler wrapping."""

    def test_empty_policies_raise(self, guard):
        """Wrapping without policies is a configuration error."""

        async def handler(request):
            return JSONResponse({})

        with pytest.raises(ConfigError):
            guard.wrap(handler, [])

    def test_wrap_preserves_metadata(self, guard):
        """The wrapper keeps the handler's name."""

        async def list_sales(request):
            return JSONResponse({})

        assert guard.wrap(list_sales, [A]).__name__ == "list_sales"

    @pytest.mark.asyncio
    async def test_blocked_never_calls_handler(self, guard):
        """The handler is not invoked once the limit is hit."""
        calls = []

        async def handler(request):
            calls.append(request)
            return JSONResponse({"ok": True})

        endpoint = guard.wrap(handler, [Policy("P", 1, 30)])
        first = await endpoint(make_request())
        second = await endpoint(make_request())

        assert first.status_code == 200
        assert second.status_code == 429
        assert len(calls) == 1
        assert guard.status()["recent_blocks"] == 1

    @pytest.mark.asyncio
    async def test_route_bypass(self, guard):
        """bypass=True skips counting and headers."""

        async def handler(request):
            return JSONResponse({"ok": True})

        endpoint = guard.wrap(handler, [Policy("P", 1, 30)], bypass=True)
        for _ in range(3):
            response = await endpoint(make_request())
            assert response.status_code == 200
            assert "X-RateLimit-Limit" not in response.headers
        assert len(guard.store.fallback) == 0

    @pytest.mark.asyncio
    async def test_config_bypass(self, clock):
        """A bypassing config skips counting and headers."""
        guard = RateLimitGuard(
            RateLimitConfig(environment="development"), CounterStore(clock=clock)
        )

        async def handler(request):
            return JSONResponse({"ok": True})

        response = await guard.wrap(handler, [Policy("P", 1, 30)])(make_request())
        assert "X-RateLimit-Limit" not in response.headers
        assert len(guard.store.fallback) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resolver_kind", ["value", "sync", "async"])
    async def test_user_id_sources(self, guard, resolver_kind):
        """user_id may be a value, a function, or a coroutine function."""

        def sync_resolver(request):
            return "u-1"

        async def async_resolver(request):
            return "u-1"

        source = {"value": "u-1", "sync": sync_resolver, "async": async_resolver}[
            resolver_kind
        ]

        async def handler(request):
            return JSONResponse({})

        policy = Policy("M", 1, 60, Scope.USER)
        endpoint = guard.wrap(handler, [policy], user_id=source)
        await endpoint(make_request("POST", ip="1.1.1.1"))
        # Same user, different IP: same bucket
        response = await endpoint(make_request("POST", ip="2.2.2.2"))
        assert response.status_code == 429


# =============================================================================
# Tests: status()
# =============================================================================


class TestGuardStatus:
    """Test the diagnostics summary."""

    def test_status(self, guard):
        """status() reports backend, enabled flag, and policies."""
        status = guard.status()
        assert status["enabled"] is True
        assert status["backend"] == "memory"
        assert "AUTH_DEFAULT (5/30s)" in status["policies"]
        assert status["recent_blocks"] == 0

    @pytest.mark.asyncio
    async def test_startup_shutdown(self, guard):
        """Lifecycle helpers start and stop the store."""
        await guard.startup()
        assert guard.store.fallback._sweeper is not None
        await guard.shutdown()
        assert guard.store.fallback._sweeper is None

    def test_from_config(self):
        """from_config builds a store from the config."""
        guard = RateLimitGuard.from_config(RateLimitConfig(max_entries=5))
        assert guard.store.backend_name == "memory"
        assert guard.store.fallback._max_entries == 5
