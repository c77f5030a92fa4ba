"""
Thread-safe TTL cache for market parameters.

Order building needs the tick size, neg-risk flag and fee rate of a token.
They change rarely, so the client keeps them for a few minutes instead of
asking the CLOB before every order.
"""

import time
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional
import logging

from ..models import TickSize

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cached value with its expiry (monotonic seconds)."""
    value: Any
    expires_at: float


class TTLCache:
    """
    Thread-safe cache with time-to-live and LRU eviction.

    Entries live in an OrderedDict: most recently used at the end, so
    eviction of the oldest is O(1).
    """

    def __init__(self, default_ttl: float = 300.0, max_size: int = 10000):
        """
        Initialize cache.

        Args:
            default_ttl: Default TTL in seconds
            max_size: Entries kept before LRU eviction
        """
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        """Cached value, or None if missing or expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            if time.monotonic() > entry.expires_at:
                del self._cache[key]
                logger.debug(f"Cache expired: {key}")
                return None
            self._cache.move_to_end(key)
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value, evicting the least recently used entry when full."""
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            elif len(self._cache) >= self.max_size:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug(f"Cache LRU eviction: {evicted}")
            self._cache[key] = CacheEntry(value=value, expires_at=time.monotonic() + ttl)

    def get_or_fetch(self, key: str, fetch_fn: Callable[[], Any], ttl: Optional[float] = None) -> Any:
        """
        Cached value, fetching and storing it on a miss.

        Errors raised by fetch_fn propagate and nothing is cached.
        """
        value = self.get(key)
        if value is not None:
            return value

        logger.debug(f"Cache miss, fetching: {key}")
        value = fetch_fn()
        self.set(key, value, ttl)
        return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)


class MarketMetadataCache:
    """
    Per-token order parameters.

    Caches tick sizes, fee rates and neg-risk flags.
    """

    def __init__(self, ttl: float = 300.0):
        self.cache = TTLCache(default_ttl=ttl)

    def tick_size(self, token_id: str, fetch_fn: Callable[[], TickSize]) -> TickSize:
        return self.cache.get_or_fetch(f"tick_size:{token_id}", fetch_fn)

    def neg_risk(self, token_id: str, fetch_fn: Callable[[], bool]) -> bool:
        return self.cache.get_or_fetch(f"neg_risk:{token_id}", fetch_fn)

    def fee_rate_bps(self, token_id: str, fetch_fn: Callable[[], int]) -> int:
        return self.cache.get_or_fetch(f"fee_rate:{token_id}", fetch_fn)

    def set_tick_size(self, token_id: str, tick_size: TickSize) -> None:
        """Update tick size (e.g. from a tick_size_change stream event)."""
        self.cache.set(f"tick_size:{token_id}", tick_size)

    def invalidate(self, token_id: str) -> None:
        """Forget everything cached for a token."""
        for prefix in ("tick_size", "neg_risk", "fee_rate"):
            self.cache.delete(f"{prefix}:{token_id}")

    def clear(self) -> None:
        self.cache.clear()
