import time
from collections.abc import Callable

from cachetools import FIFOCache
from loguru import logger
from pydantic import BaseModel

from stylecheck.core.config import settings
from stylecheck.models.signals import StyleSignals


class CacheEntry(BaseModel):
    signals: StyleSignals
    expires_at: float


class SignalCache:
    """
    Bounded, time-expiring in-memory cache of resolved style signals.

    Entries expire a fixed TTL after they were written; when full, the oldest
    written entry is evicted first. The clock is injectable so tests can step
    time deterministically.
    """

    def __init__(
        self,
        ttl_seconds: float = settings.SIGNAL_CACHE_TTL_SECONDS,
        max_entries: int = settings.SIGNAL_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: FIFOCache = FIFOCache(maxsize=max_entries)

    def get(self, key: str) -> StyleSignals | None:
        entry: CacheEntry | None = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            logger.debug(f"Signal cache entry expired for {key}")
            self._entries.pop(key, None)
            return None
        return entry.signals

    def set(self, key: str, signals: StyleSignals) -> None:
        self._entries[key] = CacheEntry(signals=signals, expires_at=self._clock() + self.ttl_seconds)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
