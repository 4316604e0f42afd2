"""Abstract base class for distributed counter backends.

Defines the two keyed-counter operations the counter store relies on.
"""

from abc import ABC, abstractmethod


class CounterBackend(ABC):
    """Abstract interface for a shared keyed counter service.

    ``incr`` must be atomic across processes: concurrent callers incrementing
    the same key never under-count. Implementations enforce their own
    per-call timeout and raise on any failure; the counter store decides
    how to degrade.
    """

    name: str = "backend"

    async def initialize(self) -> None:
        """Open connections. Called once before the first request."""

    @abstractmethod
    async def incr(self, key: str) -> int:
        """Atomically increment ``key`` and return the new value.

        Args:
            key: Counter key (without backend prefix)

        Returns:
            Counter value after the increment
        """
        pass

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set a TTL on ``key``.

        Returns:
            True if the expiry was applied
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources (connection pools, etc.)."""
        pass
