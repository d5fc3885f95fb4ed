"""Short-lived cache for de-duplicating repeated chat submissions."""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)


class TTLCache:
    """
    Bounded key/value cache with per-entry expiry.

    Entries expire ``ttl_s`` seconds after being set (or a per-entry
    override). When full, the oldest inserted entry is evicted. The clock is
    injectable so expiry can be tested without real timers.
    """

    def __init__(
        self,
        max_size: int = 50,
        ttl_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.max_size = max_size
        self.ttl_s = ttl_s
        self.clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        self.purge_expired()
        entry = self._entries.get(key)
        if entry is None:
            return None
        return entry[1]

    def set(self, key: Hashable, value: Any, ttl_s: Optional[float] = None):
        """Store a value, evicting the oldest entries if the cache is full."""
        self.purge_expired()
        if key in self._entries:
            del self._entries[key]

        while len(self._entries) >= self.max_size:
            oldest_key, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted oldest cache entry: {oldest_key!r}")

        expires_at = self.clock() + (self.ttl_s if ttl_s is None else ttl_s)
        self._entries[key] = (expires_at, value)

    def purge_expired(self):
        now = self.clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

    def clear(self):
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        self.purge_expired()
        return len(self._entries)
