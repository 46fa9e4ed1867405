import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    key: str
    data: Any
    timestamp: datetime


class CacheHelper:
    """In-memory result cache with a fixed TTL and a bounded size.

    Eviction drops the oldest inserted entry, not the least recently used one.
    Stale entries are left in place until they are looked up or overwritten.
    """

    DEFAULT_TTL_SECONDS = 300
    DEFAULT_MAX_ENTRIES = 10

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            ttl_seconds: Age after which an entry is recomputed. Defaults to 5 minutes.
            max_entries: Entries kept before the oldest is evicted. Defaults to 10.
            clock: Returns the current aware datetime; injectable for tests.
        """
        self.ttl = timedelta(seconds=self.DEFAULT_TTL_SECONDS if ttl_seconds is None else ttl_seconds)
        # 0 disables caching; every lookup computes
        self.max_entries = max(0, int(self.DEFAULT_MAX_ENTRIES if max_entries is None else max_entries))
        self.clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def get_cached_content(self, key: str) -> Optional[Any]:
        """Return cached data if the entry exists and is younger than the TTL"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self.clock() - entry.timestamp >= self.ttl:
                logger.debug(f"Cache entry expired: {key}")
                return None
            return entry.data

    def save_to_cache(self, key: str, content: Any) -> None:
        """Store content under key, evicting the oldest entries past max_entries"""
        with self._lock:
            # Overwriting an existing key keeps its first insertion position
            self._entries[key] = CacheEntry(key=key, data=content, timestamp=self.clock())
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cache entry: {evicted}")

    def get_or_compute(self, key: str, compute: Callable[[], Any]) -> Any:
        """Lookup, compute on miss, store. Holds the lock so concurrent misses compute once."""
        with self._lock:
            cached = self.get_cached_content(key)
            if cached is not None:
                logger.debug(f"Cache hit: {key}")
                return cached
            logger.debug(f"Cache miss: {key}")
            content = compute()
            self.save_to_cache(key, content)
            return content

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
