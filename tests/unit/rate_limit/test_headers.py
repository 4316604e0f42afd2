"""Unit tests for rate limit response headers."""

import pytest
from lootaura.rate_limit.headers import apply_rate_headers, rate_limit_headers
from lootaura.rate_limit.policies import Policies
from starlette.responses import JSONResponse, StreamingResponse

NOW = 1_700_000_000
RESET_AT = NOW + 30


# =============================================================================
# Tests: rate_limit_headers()
# =============================================================================


class TestRateLimitHeaders:
    """Test header generation."""

    def test_allowed_headers(self):
        """Standard headers without Retry-After while budget remains."""
        headers = rate_limit_headers(Policies.AUTH_DEFAULT, 3, RESET_AT, False, now=NOW)
        assert headers == {
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "3",
            "X-RateLimit-Reset": str(RESET_AT),
            "X-RateLimit-Policy": "AUTH_DEFAULT 5/30",
        }

    def test_hard_limit_sets_retry_after(self):
        """Retry-After is set when nothing remains."""
        headers = rate_limit_headers(Policies.AUTH_DEFAULT, 0, RESET_AT, False, now=NOW)
        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["Retry-After"] == "30"

    def test_soft_limit_has_no_retry_after(self):
        """Soft-limited responses never carry Retry-After."""
        headers = rate_limit_headers(Policies.SALES_VIEW_30S, 0, RESET_AT, True, now=NOW)
        assert headers["X-RateLimit-Policy"] == "SALES_VIEW_30S 20/30"
        assert "Retry-After" not in headers

    @pytest.mark.parametrize("reset_at", [NOW + 1, NOW, NOW - 10])
    def test_retry_after_minimum_one_second(self, reset_at):
        """Retry-After never drops below one second."""
        headers = rate_limit_headers(Policies.AUTH_DEFAULT, 0, reset_at, False, now=NOW)
        assert headers["Retry-After"] == "1"

    def test_fractional_now(self):
        """Sub-second clock values do not shorten Retry-After."""
        headers = rate_limit_headers(Policies.AUTH_DEFAULT, 0, RESET_AT, False, now=NOW + 0.9)
        assert headers["Retry-After"] == "30"

    def test_identical_inputs_identical_headers(self):
        """Applying twice with the same inputs gives byte-identical values."""
        args = (Policies.MUTATE_MINUTE, 0, RESET_AT, False)
        assert rate_limit_headers(*args, now=NOW) == rate_limit_headers(*args, now=NOW)


# =============================================================================
# Tests: apply_rate_headers()
# =============================================================================


class TestApplyRateHeaders:
    """Test response decoration."""

    def test_preserves_existing_headers(self):
        """Existing headers and body survive."""
        response = JSONResponse({"data": "test"}, headers={"Custom-Header": "custom-value"})
        result = apply_rate_headers(response, Policies.AUTH_DEFAULT, 2, RESET_AT, False, now=NOW)

        assert result.headers["content-type"] == "application/json"
        assert result.headers["Custom-Header"] == "custom-value"
        assert result.headers["X-RateLimit-Limit"] == "5"
        assert result.body == response.body
        assert result.status_code == 200

    def test_does_not_mutate_input(self):
        """The original response keeps its headers."""
        response = JSONResponse({"data": "test"})
        _ = response.headers  # populate the cached header view
        apply_rate_headers(response, Policies.AUTH_DEFAULT, 0, RESET_AT, False, now=NOW)

        assert "X-RateLimit-Limit" not in response.headers
        assert "Retry-After" not in response.headers

    def test_overwrites_stale_rate_headers(self):
        """Existing rate limit headers are replaced, not duplicated."""
        response = JSONResponse({}, headers={"X-RateLimit-Remaining": "99"})
        result = apply_rate_headers(response, Policies.AUTH_DEFAULT, 4, RESET_AT, False, now=NOW)
        assert result.headers.getlist("X-RateLimit-Remaining") == ["4"]

    def test_streaming_response(self):
        """Streaming responses are decorated too."""

        async def body():
            yield b"chunk"

        response = StreamingResponse(body(), media_type="text/plain")
        result = apply_rate_headers(response, Policies.AUTH_DEFAULT, 1, RESET_AT, False, now=NOW)

        assert result.headers["X-RateLimit-Remaining"] == "1"
        assert "X-RateLimit-Remaining" not in response.headers
        assert result.body_iterator is response.body_iterator

    def test_repeat_application_stable(self):
        """Decorating twice with the same inputs yields the same values."""
        response = JSONResponse({})
        args = (Policies.AUTH_DEFAULT, 0, RESET_AT, False)
        first = apply_rate_headers(response, *args, now=NOW)
        second = apply_rate_headers(first, *args, now=NOW)

        names = ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset",
                 "X-RateLimit-Policy", "Retry-After"]
        assert [first.headers[n] for n in names] == [second.headers[n] for n in names]
        assert second.headers.getlist("Retry-After") == ["30"]
