"""In-memory LRU cache with TTL expiration.

Process-level cache for optimization results in the API layer.
Survives across requests in the same uvicorn worker.
TTL: 1h (tours change as dates get confirmed). Max 200 entries.
"""

import time
from collections import OrderedDict


class LRUCache:
    """TTL-aware LRU cache for JSON-serializable responses."""

    def __init__(self, max_size: int = 200, ttl_seconds: int = 3600) -> None:
        self._cache: OrderedDict[str, tuple[float, dict]] = OrderedDict()
        self._max_size = max_size
        self._ttl = ttl_seconds

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, key: str) -> dict | None:
        if key not in self._cache:
            return None
        ts, value = self._cache[key]
        if time.monotonic() - ts > self._ttl:
            del self._cache[key]
            return None
        self._cache.move_to_end(key)
        return value

    def set(self, key: str, value: dict) -> None:
        if key in self._cache:
            self._cache.move_to_end(key)
        self._cache[key] = (time.monotonic(), value)
        if len(self._cache) > self._max_size:
            self._cache.popitem(last=False)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with prefix; returns how many were removed."""
        stale = [key for key in self._cache if key.startswith(prefix)]
        for key in stale:
            del self._cache[key]
        return len(stale)

    def clear(self) -> None:
        self._cache.clear()
