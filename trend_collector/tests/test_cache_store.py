"""CacheStore 테스트"""

import pytest

from trend_collector.cache.cache_store import CacheKeys, CacheStore, CacheTTL
from trend_collector.utils.config_manager import ConfigManager


class TestCacheStore:
    """TTL 캐시 기본 동작."""

    @pytest.fixture(autouse=True)
    def _setup(self, clock):
        self.clock = clock
        self.cache = CacheStore(clock=self.clock)

    def test_set_and_get(self):
        self.cache.set("k", {"a": 1}, 1000)
        assert self.cache.get("k") == {"a": 1}

    def test_miss(self):
        assert self.cache.get("missing") is None

    def test_expired_entry_is_miss_and_evicted(self):
        self.cache.set("k", "v", 100)
        self.clock.advance(150)
        assert self.cache.get("k") is None
        assert self.cache.get_stats()["size"] == 0

    def test_expiry_boundary(self):
        self.cache.set("k", "v", 100)
        self.clock.advance(99)
        assert self.cache.get("k") == "v"
        self.clock.advance(1)
        assert self.cache.get("k") is None

    def test_default_ttl(self):
        cache = CacheStore(default_ttl_ms=50, clock=self.clock)
        cache.set("k", "v")
        self.clock.advance(60)
        assert not cache.has("k")

    def test_delete_exact(self):
        self.cache.set("designs:statistics", 1, 1000)
        assert self.cache.delete("designs:statistics") == 1
        assert self.cache.delete("designs:statistics") == 0

    def test_delete_pattern(self):
        self.cache.set("designs:trending:all:week:12", 1, 1000)
        self.cache.set("designs:trending:ui-ux:day:12", 2, 1000)
        self.cache.set("competitions:trending:all:week:12", 3, 1000)
        assert self.cache.delete("designs:trending:*") == 2
        assert self.cache.get("competitions:trending:all:week:12") == 3

    def test_delete_user_keys(self):
        self.cache.set(CacheKeys.user("designs", "u1", "bookmarks", 1), "a", 1000)
        self.cache.set(CacheKeys.user("designs", "u1", "likes"), "b", 1000)
        self.cache.set(CacheKeys.user("designs", "u2", "likes"), "c", 1000)
        assert self.cache.delete_prefix("designs:u1:") == 2
        assert self.cache.get("designs:u2:likes") == "c"

    def test_pattern_special_characters_are_literal(self):
        key = CacheKeys.listing("designs", "ui-ux", "a.b", "latest", 1, 20)
        self.cache.set(key, 1, 1000)
        self.cache.set("designs:ui-ux:xyz", 2, 1000)
        assert self.cache.delete('designs:ui-ux:{"query":"a.b"*') == 1

    def test_get_or_set(self):
        calls = []

        def factory():
            calls.append(1)
            return "computed"

        assert self.cache.get_or_set("k", factory, 1000) == "computed"
        assert self.cache.get_or_set("k", factory, 1000) == "computed"
        assert len(calls) == 1

    def test_peek_has_no_side_effects(self):
        self.cache.set("k", "v", 100)
        assert self.cache.peek("k") == "v"
        self.clock.advance(200)
        assert self.cache.peek("k") is None
        stats = self.cache.get_stats()
        assert stats["hits"] == 0 and stats["misses"] == 0
        assert stats["size"] == 1

    def test_cleanup(self):
        self.cache.set("a", 1, 100)
        self.cache.set("b", 2, 1000)
        self.clock.advance(500)
        assert self.cache.cleanup() == 1
        assert self.cache.keys() == ["b"]

    def test_stats_hit_rate(self):
        self.cache.set("k", 1, 1000)
        self.cache.get("k")
        self.cache.get("x")
        stats = self.cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hitRate"] == 0.5


class TestCacheKeys:
    """결정적 캐시 키."""

    def test_listing_key_format(self):
        key = CacheKeys.listing("designs", "ui-ux", "logo", "latest", 1, 20)
        assert key == 'designs:ui-ux:{"query":"logo","sort":"latest","page":1,"limit":20}'

    def test_identical_params_identical_keys(self):
        assert CacheKeys.listing("d", "c", "q", "popular", 2, 10) == CacheKeys.listing("d", "c", "q", "popular", 2, 10)
        assert CacheKeys.listing("d", "c", "q", "popular", 2, 10) != CacheKeys.listing("d", "c", "q", "popular", 3, 10)

    def test_trending_key_format(self):
        assert CacheKeys.trending("designs", "all", "week", 12) == "designs:trending:all:week:12"

    def test_statistics_key(self):
        assert CacheKeys.statistics("competitions") == "competitions:statistics"


class TestCacheTTL:
    """TTL 프리셋."""

    def test_defaults(self):
        ttl = CacheTTL()
        assert ttl.short == 5 * 60 * 1000
        assert ttl.very_long == 24 * 60 * 60 * 1000
        assert ttl.trending_day == 15 * 60 * 1000

    def test_from_config(self, tmp_config_dir):
        ttl = CacheTTL(ConfigManager(tmp_config_dir))
        assert ttl.short == 1000
        assert ttl.medium == 2000
        assert ttl.long == CacheTTL.LONG
