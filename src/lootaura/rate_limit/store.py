"""Fixed window counter store.

Owns every window counter. Counts go to the distributed backend when one is
configured; the in-process map takes over when none is configured or when a
backend call fails.
"""

import logging
import time
from typing import Callable, Optional

from lootaura.rate_limit.backends.base import CounterBackend
from lootaura.rate_limit.backends.memory import InMemoryCounter
from lootaura.rate_limit.config import RateLimitConfig
from lootaura.rate_limit.result import WindowCount

logger = logging.getLogger(__name__)


def window_start(now: float, window_seconds: int) -> int:
    """Start of the window containing ``now``, aligned to the epoch."""
    seconds = int(now)
    return seconds - (seconds % window_seconds)


class CounterStore:
    """Per-window request counts with distributed primary and local fallback.

    Lifecycle: construct once at process start, ``await start()`` to open
    the backend and start the sweep thread, ``await close()`` on shutdown.

    Example:
        >>> store = CounterStore()
        >>> await store.start()
        >>> await store.increment_and_get("ip:1.2.3.4:GET:/api/x:AUTH_DEFAULT", 30)
        WindowCount(count=1, reset_at=...)
        >>> await store.close()
    """

    def __init__(
        self,
        backend: Optional[CounterBackend] = None,
        max_entries: int = 10_000,
        sweep_interval_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the counter store.

        Args:
            backend: Distributed backend, or None for in-process only
            max_entries: Hard cap on fallback entries
            sweep_interval_seconds: Fallback sweep period
            clock: Epoch-seconds clock (injectable for tests)
        """
        self._backend = backend
        self._fallback = InMemoryCounter(max_entries=max_entries)
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._started = False

    @property
    def backend_name(self) -> str:
        return self._backend.name if self._backend is not None else "memory"

    @property
    def fallback(self) -> InMemoryCounter:
        return self._fallback

    def now(self) -> float:
        return self._clock()

    async def start(self) -> None:
        if self._started:
            return
        if self._backend is not None:
            await self._backend.initialize()
        self._fallback.start_sweeper(self._sweep_interval, self._clock)
        self._started = True

    async def close(self) -> None:
        self._fallback.stop_sweeper()
        if self._backend is not None:
            await self._backend.close()
        self._started = False

    async def increment_and_get(self, window_key: str, window_seconds: int) -> WindowCount:
        """Count one request against ``window_key`` in the current window.

        Args:
            window_key: Derived key plus policy name
            window_seconds: Window length

        Returns:
            WindowCount for the current window. Never raises on backend
            failure.
        """
        now = self._clock()
        start = window_start(now, window_seconds)
        full_key = f"{window_key}:{start}"

        if self._backend is not None:
            try:
                count = await self._backend.incr(full_key)
            except Exception as e:
                logger.warning(
                    "Rate limit backend %s failed, counting in-process: %r",
                    self._backend.name,
                    e,
                )
            else:
                await self._set_expiry(full_key, window_seconds)
                return WindowCount(count=count, reset_at=start + window_seconds)

        return self._fallback.increment(full_key, start, window_seconds, now)

    async def _set_expiry(self, full_key: str, window_seconds: int) -> None:
        # Best effort: a missed expiry leaves a key that is never reused
        try:
            await self._backend.expire(full_key, window_seconds)
        except Exception as e:
            logger.warning("Rate limit expiry failed for %s: %r", full_key, e)


def build_counter_store(
    config: RateLimitConfig,
    clock: Callable[[], float] = time.time,
) -> CounterStore:
    """Create the counter store described by ``config``."""
    backend: Optional[CounterBackend] = None
    if config.redis_url:
        from lootaura.rate_limit.backends.redis import RedisCounterBackend

        backend = RedisCounterBackend(
            redis_url=config.redis_url,
            token=config.redis_token,
            key_prefix=config.redis_key_prefix,
            pool_size=config.redis_connection_pool_size,
            timeout_seconds=config.redis_timeout_seconds,
        )

    return CounterStore(
        backend=backend,
        max_entries=config.max_entries,
        sweep_interval_seconds=config.sweep_interval_seconds,
        clock=clock,
    )
