"""In-process cache for public song responses."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional, Tuple

from .util.lru import BoundedLRU


logger = logging.getLogger(__name__)

LIST_KEY = "songs"
FILTERS_KEY = "songs:filters"
DEFAULT_CAPACITY = 512
DEFAULT_TTL = 1800.0


def detail_key(song_id: Any) -> str:
    return f"songs:{song_id}"


class ResponseCache:
    """Time-limited values kept in a bounded LRU."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self._entries: BoundedLRU[str, Tuple[float, Any]] = BoundedLRU(capacity)
        self.ttl = ttl
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key)
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._entries.put(key, (self._clock() + (self.ttl if ttl is None else ttl), value))

    def get_or_set(self, key: str, factory: Callable[[], Any], ttl: Optional[float] = None) -> Any:
        value = self.get(key)
        if value is None:
            value = factory()
            self.set(key, value, ttl)
        return value

    def invalidate(self, song_id: Optional[Any] = None) -> List[str]:
        """Drop everything, or one song's detail page and the list views derived from it."""

        if song_id is None:
            keys = self._entries.keys()
            self._entries.clear()
        else:
            keys = [
                key
                for key in (detail_key(song_id), LIST_KEY, FILTERS_KEY)
                if self._entries.pop(key) is not None
            ]
        logger.info("Invalidated %d cached response(s)", len(keys))
        return keys


_cache: Optional[ResponseCache] = None


def get_response_cache() -> ResponseCache:
    global _cache
    if _cache is None:
        _cache = ResponseCache()
    return _cache


def reset_response_cache() -> None:
    global _cache
    _cache = None
