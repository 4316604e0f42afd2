"""In-process fixed window counters.

Used when no distributed backend is configured, and for any single call
where the distributed backend fails. Counts are per process only.
"""

import logging
import threading
from collections import OrderedDict
from typing import Optional

from lootaura.rate_limit.result import WindowCount

logger = logging.getLogger(__name__)


class InMemoryCounter:
    """Thread-safe fixed window counter map with bounded size.

    Entries are keyed by the full window key (which already embeds the
    window start) and kept in insertion order so eviction can drop the
    oldest windows first.

    Performance: O(1) increment; sweep is O(n)
    Memory: bounded by max_entries

    Example:
        >>> counter = InMemoryCounter(max_entries=1000)
        >>> counter.increment("ip:1.2.3.4:GET:/api/x:P:1700000010", 1700000010, 30, 1700000012)
        WindowCount(count=1, reset_at=1700000040)
    """

    DEFAULT_MAX_ENTRIES = 10_000

    def __init__(self, max_entries: int = 0):
        """Initialize in-memory counter.

        Args:
            max_entries: Hard cap on tracked windows (default: 10,000).
                         Set to 0 to use DEFAULT_MAX_ENTRIES.
        """
        self._entries: "OrderedDict[str, WindowCount]" = OrderedDict()
        self._lock = threading.Lock()
        self._max_entries = max_entries if max_entries > 0 else self.DEFAULT_MAX_ENTRIES

        self._sweeper: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def increment(
        self,
        full_key: str,
        window_start: int,
        window_seconds: int,
        now: float,
    ) -> WindowCount:
        """Count one request in the window identified by ``full_key``.

        Args:
            full_key: Window key including the window start
            window_start: Epoch seconds the window opened
            window_seconds: Window length
            now: Current epoch time

        Returns:
            Updated WindowCount
        """
        with self._lock:
            entry = self._entries.get(full_key)
            if entry is None or now >= entry.reset_at:
                entry = WindowCount(count=1, reset_at=window_start + window_seconds)
                self._entries.pop(full_key, None)
            else:
                entry = WindowCount(count=entry.count + 1, reset_at=entry.reset_at)
            self._entries[full_key] = entry

            if len(self._entries) > self._max_entries:
                self._evict_oldest()
            return entry

    def sweep(self, now: float) -> int:
        """Drop expired windows, then enforce the size cap.

        Returns:
            Number of entries removed
        """
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now >= entry.reset_at]
            for key in expired:
                del self._entries[key]
            evicted = self._evict_oldest()

        if expired:
            logger.debug("Rate limit sweep removed %d expired windows", len(expired))
        return len(expired) + evicted

    def _evict_oldest(self) -> int:
        """Evict oldest-inserted entries until under the cap.

        SECURITY: Bounds memory during long backend outages, where spoofed
        forwarded-for headers could otherwise mint unlimited keys.
        Must be called while holding self._lock.
        """
        evicted = 0
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
            evicted += 1

        if evicted:
            logger.warning(
                "Rate limit memory eviction: removed %d oldest entries "
                "(max_entries=%d, current=%d)",
                evicted,
                self._max_entries,
                len(self._entries),
            )
        return evicted

    def start_sweeper(self, interval_seconds: float, clock) -> None:
        """Start the periodic sweep thread (idempotent)."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        self._stop.clear()

        def _run():
            while not self._stop.wait(interval_seconds):
                self.sweep(clock())

        self._sweeper = threading.Thread(
            target=_run, name="rate-limit-sweeper", daemon=True
        )
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        """Stop the sweep thread and wait for it to exit."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5.0)
            self._sweeper = None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
