"""In-memory TTL cache for storefront lookups."""

import time
from typing import Dict, Optional, Tuple

from smartseller_api.core.logger import setup_logger

logger = setup_logger(__name__)


class StorefrontCache:
    """Caches storefront records by slug or ``domain:<domain>`` key."""

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._items: Dict[str, Tuple[float, object]] = {}

    def get(self, key: str) -> Optional[object]:
        item = self._items.get(key)
        if item is None:
            return None
        expires_at, value = item
        if time.monotonic() >= expires_at:
            self._items.pop(key, None)
            return None
        return value

    def set(self, key: str, value: object, ttl: float) -> None:
        if key not in self._items and len(self._items) >= self.max_size:
            self._evict_oldest()
        self._items[key] = (time.monotonic() + ttl, value)

    def invalidate(self, key: str) -> None:
        self._items.pop(key, None)

    def invalidate_value(self, predicate) -> int:
        """Drop every entry whose value matches; returns how many were removed."""
        keys = [key for key, (_, value) in self._items.items() if predicate(value)]
        for key in keys:
            del self._items[key]
        return len(keys)

    def _evict_oldest(self) -> None:
        oldest = min(self._items, key=lambda k: self._items[k][0])
        logger.debug(f"Storefront cache full, evicting {oldest}")
        del self._items[oldest]

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
