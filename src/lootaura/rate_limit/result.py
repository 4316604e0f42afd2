"""Rate limit result dataclasses.

WindowCount is what the counter store hands back for one fixed window;
CheckResult is the limiter's admission decision for one policy.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class WindowCount:
    """Count within one fixed window.

    Attributes:
        count: Requests seen in the window, including the current one
        reset_at: Epoch seconds when the window closes
    """

    count: int
    reset_at: int


@dataclass(frozen=True)
class CheckResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed
        soft_limited: Allowed only through the soft grace window
        remaining: Requests remaining in the current window (0 when over)
        reset_at: Epoch seconds when the primary window resets
    """

    allowed: bool
    soft_limited: bool
    remaining: int
    reset_at: int
