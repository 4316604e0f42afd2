"""Standard rate limit response headers."""

import copy
import time
from typing import Dict, Optional

from starlette.responses import Response

from lootaura.rate_limit.policies import Policy

LIMIT_HEADER = "X-RateLimit-Limit"
REMAINING_HEADER = "X-RateLimit-Remaining"
RESET_HEADER = "X-RateLimit-Reset"
POLICY_HEADER = "X-RateLimit-Policy"
RETRY_AFTER_HEADER = "Retry-After"


def rate_limit_headers(
    policy: Policy,
    remaining: int,
    reset_at: int,
    soft_limited: bool,
    now: Optional[float] = None,
) -> Dict[str, str]:
    """Generate X-RateLimit-* headers.

    Retry-After is only set on a hard block (nothing remaining and not
    admitted through soft grace).

    Returns:
        Dictionary of header name -> value
    """
    headers = {
        LIMIT_HEADER: str(policy.limit),
        REMAINING_HEADER: str(remaining),
        RESET_HEADER: str(reset_at),
        POLICY_HEADER: policy.describe(),
    }

    if remaining == 0 and not soft_limited:
        if now is None:
            now = time.time()
        headers[RETRY_AFTER_HEADER] = str(max(1, reset_at - int(now)))

    return headers


def apply_rate_headers(
    response: Response,
    policy: Policy,
    remaining: int,
    reset_at: int,
    soft_limited: bool,
    now: Optional[float] = None,
) -> Response:
    """Return a copy of ``response`` carrying the rate limit headers.

    The copy owns its header list, so ``response`` is left untouched.
    """
    annotated = copy.copy(response)
    annotated.raw_headers = list(response.raw_headers)
    # Starlette caches the MutableHeaders view over the old list
    annotated.__dict__.pop("_headers", None)

    for name, value in rate_limit_headers(
        policy, remaining, reset_at, soft_limited, now=now
    ).items():
        annotated.headers[name] = value
    return annotated
