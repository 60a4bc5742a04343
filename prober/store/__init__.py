"""Status store backends."""

from prober.store.base import StatusStore
from prober.store.memory import InMemoryStatusStore
from prober.store.redis_store import RedisStatusStore

__all__ = [
    "InMemoryStatusStore",
    "RedisStatusStore",
    "StatusStore",
]
