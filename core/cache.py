"""
Process-local TTL cache for market data.

An expired entry is still returned by get() with stale=True so tools can fall
back to old data when every provider fails. Entries older than
`max_stale_factor` times their TTL are dropped, and the cache holds at most
`max_entries` keys (oldest write evicted first).
"""
import time
from typing import Any, Callable, NamedTuple, Optional

DEFAULT_MAX_ENTRIES = 4096
DEFAULT_MAX_STALE_FACTOR = 24


class CacheHit(NamedTuple):
    data: Any
    stale: bool


class CacheManager:
    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES,
                 max_stale_factor: float = DEFAULT_MAX_STALE_FACTOR,
                 clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self.max_stale_factor = max_stale_factor
        self._clock = clock
        self._entries: dict[str, tuple[Any, float, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, stored_at: float, ttl: float, now: float) -> bool:
        return now - stored_at > ttl * self.max_stale_factor

    def set(self, key: str, data: Any, ttl_seconds: float):
        now = self._clock()
        # re-insert so dict order follows write time
        self._entries.pop(key, None)
        self._entries[key] = (data, now, ttl_seconds)
        if len(self._entries) > self.max_entries:
            self.prune(now)
        while len(self._entries) > self.max_entries:
            del self._entries[next(iter(self._entries))]

    def get(self, key: str) -> Optional[CacheHit]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        data, stored_at, ttl = entry
        now = self._clock()
        if self._expired(stored_at, ttl, now):
            del self._entries[key]
            return None
        return CacheHit(data=data, stale=(now - stored_at) > ttl)

    def prune(self, now: Optional[float] = None) -> int:
        """Drop entries past their stale window; returns how many were removed."""
        now = self._clock() if now is None else now
        dead = [k for k, (_, stored_at, ttl) in self._entries.items() if self._expired(stored_at, ttl, now)]
        for k in dead:
            del self._entries[k]
        return len(dead)

    def delete(self, key: str):
        self._entries.pop(key, None)

    def clear(self):
        self._entries.clear()


# singleton
cache = CacheManager()
