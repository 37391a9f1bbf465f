"""
Time-bounded cache for read-side views.

Leaderboard and queue responses are cached for a few seconds; every vote or
contribution invalidates them by prefix. One instance is created per
application and injected, so tests get a fresh cache per app.
"""

import time
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class CacheService:
    """
    In-process TTL cache.

    Features:
    - get / set with per-key TTL
    - delete by key or by key prefix (for invalidation hooks)
    - injectable clock for tests
    """

    PREFIX_PRODUCT_VOTES = "product-votes:"

    def __init__(
        self,
        default_ttl_seconds: int = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}  # key -> (value, expires_at)

    def get(self, key: str) -> Optional[Any]:
        """Get a cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Cache a value. A TTL of 0 or less is a no-op."""
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            return
        self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> bool:
        """Remove one key. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def delete_by_prefix(self, prefix: str) -> int:
        """Remove every key starting with prefix. Returns the number removed."""
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.debug("cache_invalidated", prefix=prefix, removed=len(keys))
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
