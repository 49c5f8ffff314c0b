"""In-memory TTL caches used by the client and models."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

CACHE_TTL = 30 * 60.0

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """A cached value with the time it was stored."""

    last_updated_at: float
    value: V


class TTLCache(Generic[V]):
    """Mapping of string keys to entries that expire after a fixed TTL.

    The cache does no locking of its own. Callers hold ``lock`` for the whole
    lookup, refresh and re-check sequence so a refresh is never interleaved
    with another thread's lookup on the same map.
    """

    def __init__(self, ttl: float = CACHE_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize cache.

        Args:
            ttl: Lifetime of an entry in seconds
            clock: Monotonic time source in seconds
        """
        self.ttl = ttl
        self.clock = clock
        self.lock = threading.Lock()
        self._entries: dict[str, CacheEntry[V]] = {}

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self.is_fresh(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def is_fresh(self, entry: CacheEntry[V]) -> bool:
        return self.clock() < entry.last_updated_at + self.ttl

    def get(self, key: str) -> V | None:
        """Return the live value for key, evicting it first if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not self.is_fresh(entry):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = CacheEntry(last_updated_at=self.clock(), value=value)

    def evict(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
