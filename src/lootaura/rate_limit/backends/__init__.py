"""Counter backends."""

from lootaura.rate_limit.backends.base import CounterBackend
from lootaura.rate_limit.backends.memory import InMemoryCounter
from lootaura.rate_limit.backends.redis import RedisCounterBackend

__all__ = [
    "CounterBackend",
    "InMemoryCounter",
    "RedisCounterBackend",
]
