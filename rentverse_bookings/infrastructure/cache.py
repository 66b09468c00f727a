"""Process-wide read-through cache for property listing endpoints.

Only catalogue reads go through here. Booking, installment and payment
state is always read from the database.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from rentverse_bookings.config import settings


def make_key(prefix: str, **params: Any) -> str:
    """Stable key from an endpoint name and its query parameters"""
    parts = [f"{name}={params[name]}" for name in sorted(params) if params[name] is not None]
    return f"{prefix}?{'&'.join(parts)}"


class ReadCache:
    def __init__(self, ttl_seconds: int | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl_seconds if ttl_seconds is not None else settings.read_cache_ttl_seconds
        self._clock = clock
        self._items: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            stored_at, value = item
            if self._clock() - stored_at > self.ttl:
                del self._items[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._items[key] = (self._clock(), value)

    def invalidate(self, key: str | None = None) -> None:
        """Drop one key, or everything when no key is given"""
        with self._lock:
            if key is None:
                self._items.clear()
            else:
                self._items.pop(key, None)

    def cleanup(self) -> int:
        """Evict expired entries, returning how many were removed"""
        now = self._clock()
        with self._lock:
            expired = [k for k, (stored_at, _) in self._items.items() if now - stored_at > self.ttl]
            for k in expired:
                del self._items[k]
            return len(expired)

    def __len__(self) -> int:
        return len(self._items)


read_cache = ReadCache()
