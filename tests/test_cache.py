"""Tests for the in-memory LRU cache."""

from __future__ import annotations

from therapy_assistant.services.cache import DEFAULT_MAX_BYTES, LRUCache

# ── Core operations ──────────────────────────────────────────────────


class TestLRUCacheBasics:
    def test_put_and_get(self):
        cache = LRUCache()
        cache.put("strategies:all", [{"id": 1, "name": "Modeling"}])
        assert cache.get("strategies:all") == [{"id": 1, "name": "Modeling"}]

    def test_get_returns_none_for_missing_key(self):
        cache = LRUCache()
        assert cache.get("nonexistent") is None

    def test_put_overwrites_existing_key(self):
        cache = LRUCache()
        cache.put("key1", "old")
        cache.put("key1", "new")
        assert cache.get("key1") == "new"
        assert cache.entry_count == 1

    def test_invalidate_removes_key(self):
        cache = LRUCache()
        cache.put("key1", "value")
        assert cache.invalidate("key1") is True
        assert cache.get("key1") is None

    def test_invalidate_returns_false_for_missing_key(self):
        cache = LRUCache()
        assert cache.invalidate("nonexistent") is False

    def test_clear_removes_all_entries(self):
        cache = LRUCache()
        cache.put("a", 1)
        cache.put("b", 2)
        cache.clear()
        assert cache.entry_count == 0
        assert cache.current_bytes == 0

    def test_has_key(self):
        cache = LRUCache()
        cache.put("key1", "value")
        assert cache.has("key1") is True
        assert cache.has("key2") is False


# ── LRU eviction ────────────────────────────────────────────────────


class TestLRUEviction:
    def test_evicts_lru_when_over_limit(self):
        # json.dumps("aaa") → '"aaa"' → 5 bytes.  Limit of 10 fits 2 entries.
        cache = LRUCache(max_bytes=10)
        cache.put("first", "aaa")
        cache.put("second", "bbb")
        cache.put("third", "ccc")
        assert cache.get("first") is None
        assert cache.get("third") == "ccc"

    def test_access_promotes_to_mru(self):
        cache = LRUCache(max_bytes=10)
        cache.put("a", "111")
        cache.put("b", "222")
        cache.get("a")
        cache.put("c", "333")
        assert cache.get("a") == "111"
        assert cache.get("b") is None

    def test_refuses_entry_larger_than_max(self):
        cache = LRUCache(max_bytes=10)
        assert cache.put("huge", "x" * 100) is False
        assert cache.get("huge") is None
        assert cache.entry_count == 0

    def test_put_reports_success(self):
        cache = LRUCache(max_bytes=10)
        assert cache.put("small", "ok") is True


# ── Size tracking ───────────────────────────────────────────────────


class TestSizeTracking:
    def test_current_bytes_tracks_inserts(self):
        cache = LRUCache()
        assert cache.current_bytes == 0
        cache.put("k", {"data": "hello"})
        assert cache.current_bytes > 0

    def test_current_bytes_decreases_on_invalidate(self):
        cache = LRUCache()
        cache.put("k", "val")
        size_before = cache.current_bytes
        cache.invalidate("k")
        assert cache.current_bytes < size_before
        assert cache.current_bytes == 0

    def test_overwrite_adjusts_size(self):
        cache = LRUCache()
        cache.put("k", "short")
        size_short = cache.current_bytes
        cache.put("k", "a much longer value string")
        assert cache.current_bytes > size_short
        assert cache.entry_count == 1


# ── Prefix invalidation ────────────────────────────────────────────


class TestPrefixInvalidation:
    def test_invalidates_matching_prefix(self):
        cache = LRUCache()
        cache.put("subgoals:1", [{"id": 11}])
        cache.put("subgoals:2", [{"id": 21}])
        cache.put("strategies:all", [{"id": 1}])

        removed = cache.invalidate_prefix("subgoals:")
        assert removed == 2
        assert cache.get("subgoals:1") is None
        assert cache.get("subgoals:2") is None
        assert cache.get("strategies:all") is not None

    def test_returns_zero_when_no_match(self):
        cache = LRUCache()
        cache.put("foo", "bar")
        assert cache.invalidate_prefix("zzz") == 0


class TestDefaultLimit:
    def test_default_max_is_10mb(self):
        cache = LRUCache()
        assert cache._max_bytes == DEFAULT_MAX_BYTES == 10 * 1024 * 1024
