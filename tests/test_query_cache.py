"""Tests for query_cache.py - per-session page memoization."""

from heritage_search.infrastructure.cache import CacheStats, QueryCache


class TestQueryCache:
    def test_get_miss_then_hit(self, make_page):
        cache = QueryCache()
        page = make_page(3)
        assert cache.get("q=a") is None
        cache.set("q=a", page)
        assert cache.get("q=a") is page
        assert cache.stats.hits == 1
        assert cache.stats.misses == 1
        assert cache.stats.hit_rate == 0.5

    def test_contains_does_not_touch_stats(self, make_page):
        cache = QueryCache()
        cache.set("q=a", make_page(1))
        assert "q=a" in cache
        assert "q=b" not in cache
        assert cache.stats.total_requests == 0

    def test_unbounded_by_default(self, make_page):
        cache = QueryCache()
        for i in range(500):
            cache.set(f"q=a&page={i}", make_page(1))
        assert len(cache) == 500
        assert cache.stats.evictions == 0

    def test_lru_bound_evicts_least_recent(self, make_page):
        cache = QueryCache(max_entries=2)
        cache.set("a", make_page(1))
        cache.set("b", make_page(1))
        cache.get("a")
        cache.set("c", make_page(1))
        assert set(cache.keys()) == {"a", "c"}
        assert cache.stats.evictions == 1

    def test_invalidate(self, make_page):
        cache = QueryCache()
        cache.set("a", make_page(1))
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        assert len(cache) == 0

    def test_clear_resets_entries_and_stats(self, make_page):
        cache = QueryCache()
        cache.set("a", make_page(1))
        cache.set("b", make_page(1))
        cache.get("a")
        assert cache.clear() == 2
        assert len(cache) == 0
        assert cache.stats.total_requests == 0

    def test_instances_are_isolated(self, make_page):
        first, second = QueryCache(), QueryCache()
        first.set("a", make_page(1))
        assert second.get("a") is None


class TestCacheStats:
    def test_empty_hit_rate(self):
        assert CacheStats().hit_rate == 0.0

    def test_reset(self):
        stats = CacheStats(hits=3, misses=1, evictions=2)
        stats.reset()
        assert (stats.hits, stats.misses, stats.evictions) == (0, 0, 0)
