"""
Query Cache

Memoizes completed ResultPages by canonical cache key.

Features:
- Unbounded by default: a session owns its cache for its whole lifetime
- Optional LRU bound via cachetools.LRUCache for long-lived sessions
- Explicit clear() so tests and teardown can isolate state
- Hit/miss statistics

There is no module-level cache: every SearchSession owns (or is
injected with) its own instance.
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cachetools import LRUCache

if TYPE_CHECKING:
    from heritage_search.models import ResultPage

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.total_requests
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.evictions = 0


class _CountingLRUCache(LRUCache):
    def __init__(self, maxsize: int, stats: CacheStats) -> None:
        super().__init__(maxsize=maxsize)
        self._stats = stats

    def popitem(self):  # type: ignore[override]
        key, value = super().popitem()
        self._stats.evictions += 1
        logger.debug(f"Evicted cached page: {key}")
        return key, value


class QueryCache:
    """
    CacheKey -> ResultPage store.

    Example:
        cache = QueryCache()
        cache.set(codec.cache_key(state), page)
        page = cache.get(codec.cache_key(state))
    """

    def __init__(self, max_entries: int | None = None) -> None:
        """
        Args:
            max_entries: None keeps every page (the default). A positive
                value bounds the cache with least-recently-used eviction.
        """
        self._stats = CacheStats()
        self.max_entries = max_entries
        self._pages: MutableMapping[str, ResultPage]
        if max_entries is None:
            self._pages = {}
        else:
            self._pages = _CountingLRUCache(max(1, max_entries), self._stats)

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def get(self, key: str) -> ResultPage | None:
        page = self._pages.get(key)
        if page is None:
            self._stats.misses += 1
            return None
        self._stats.hits += 1
        return page

    def set(self, key: str, page: ResultPage) -> None:
        self._pages[key] = page

    def invalidate(self, key: str) -> bool:
        try:
            del self._pages[key]
            return True
        except KeyError:
            return False

    def clear(self) -> int:
        """Drop every entry and reset statistics. Returns the number removed."""
        count = len(self._pages)
        self._pages.clear()
        self._stats.reset()
        return count

    def keys(self) -> list[str]:
        return list(self._pages.keys())

    def __len__(self) -> int:
        return len(self._pages)

    def __contains__(self, key: object) -> bool:
        return key in self._pages
