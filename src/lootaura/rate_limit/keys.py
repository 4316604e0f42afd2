"""Counter key derivation.

A key isolates one caller on one endpoint: ``{kind}:{identity}:{METHOD}:{path}``,
for example ``ip:203.0.113.7:GET:/api/sales`` or ``user:42:POST:/api/favorites``.
"""

import logging
from typing import Any, Mapping, Optional, Protocol
from urllib.parse import urlsplit

from lootaura.rate_limit.policies import Scope

logger = logging.getLogger(__name__)

FORWARDED_FOR_HEADER = "x-forwarded-for"
REAL_IP_HEADER = "x-real-ip"
PLATFORM_IP_HEADER = "x-vercel-forwarded-for"

UNKNOWN_CLIENT = "unknown"


class RequestLike(Protocol):
    """The parts of an HTTP request the key deriver reads."""

    method: str
    url: Any
    headers: Mapping[str, str]


def get_client_ip(request: RequestLike) -> str:
    """Extract the client IP from trusted proxy headers.

    Priority:
    1. First entry of X-Forwarded-For
    2. X-Real-IP
    3. X-Vercel-Forwarded-For
    4. "unknown"
    """
    forwarded = request.headers.get(FORWARDED_FOR_HEADER)
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    for header in (REAL_IP_HEADER, PLATFORM_IP_HEADER):
        value = (request.headers.get(header) or "").strip()
        if value:
            return value

    return UNKNOWN_CLIENT


def _request_path(request: RequestLike) -> str:
    try:
        path = urlsplit(str(request.url)).path
    except (TypeError, ValueError):
        logger.debug("Unparsable request URL, keying on '/'")
        return "/"
    return path or "/"


def derive_key(
    request: RequestLike,
    scope: Scope,
    user_id: Optional[str] = None,
) -> str:
    """Compute the isolation key for ``request`` under ``scope``.

    Args:
        request: Inbound request (method, url, headers)
        scope: Policy scope
        user_id: Authenticated user, if the caller resolved one

    Returns:
        Key string; deterministic for the same inputs
    """
    if scope is Scope.IP or scope is Scope.IP_AUTH:
        identity = f"ip:{get_client_ip(request)}"
    elif scope is Scope.USER:
        if user_id:
            identity = f"user:{user_id}"
        else:
            # Unauthenticated callers still get throttled
            identity = f"ip:{get_client_ip(request)}"
    else:
        raise ValueError(f"Unhandled scope: {scope!r}")

    return f"{identity}:{request.method.upper()}:{_request_path(request)}"
