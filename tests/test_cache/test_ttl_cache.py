"""Tests for the TTLCache module."""

from __future__ import annotations

import pytest

from browsekit.cache import TTLCache


@pytest.fixture()
def cache(clock) -> TTLCache:
    """A cache with a 1 s default TTL driven by the fake clock."""
    return TTLCache(default_ttl=1.0, clock=clock)


# ------------------------------------------------------------------ #
# Core get/set behaviour
# ------------------------------------------------------------------ #


class TestGetSet:
    def test_set_and_get(self, cache: TTLCache) -> None:
        cache.set("projects:page1", [{"id": "p1"}])
        assert cache.get("projects:page1") == [{"id": "p1"}]

    def test_cache_miss_returns_none(self, cache: TTLCache) -> None:
        """A key that was never stored returns None."""
        assert cache.get("missing") is None

    def test_set_replaces_previous_entry(self, cache: TTLCache, clock) -> None:
        cache.set("k", "old")
        clock.advance(0.9)
        cache.set("k", "new")
        clock.advance(0.9)
        # Rewriting restamps the entry, so it outlives the first write.
        assert cache.get("k") == "new"

    def test_default_ttl_property(self) -> None:
        assert TTLCache().default_ttl == 30 * 60
        assert TTLCache(default_ttl=60).default_ttl == 60

    def test_delete(self, cache: TTLCache) -> None:
        cache.set("k", 1)
        cache.delete("k")
        assert cache.get("k") is None

    def test_delete_missing_key_is_noop(self, cache: TTLCache) -> None:
        cache.delete("never-set")
        assert len(cache) == 0

    def test_clear(self, cache: TTLCache) -> None:
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0
        assert cache.get_all_keys() == []


# ------------------------------------------------------------------ #
# Expiry
# ------------------------------------------------------------------ #


class TestExpiry:
    def test_entry_valid_before_ttl(self, cache: TTLCache, clock) -> None:
        cache.set("k", "v")
        clock.advance(0.5)
        assert cache.get("k") == "v"

    def test_entry_expired_after_ttl(self, cache: TTLCache, clock) -> None:
        cache.set("k", "v")
        clock.advance(1.5)
        assert cache.get("k") is None

    def test_entry_valid_exactly_at_ttl(self, cache: TTLCache, clock) -> None:
        """Expiry is strict: age == ttl is still valid."""
        cache.set("k", "v")
        clock.advance(1.0)
        assert cache.get("k") == "v"

    def test_expired_read_deletes_entry(self, cache: TTLCache, clock) -> None:
        cache.set("k", "v")
        clock.advance(2)
        assert "k" in cache.get_all_keys()
        cache.get("k")
        assert "k" not in cache.get_all_keys()

    def test_explicit_ttl_overrides_default(self, cache: TTLCache, clock) -> None:
        cache.set("long", "v", ttl=10)
        clock.advance(5)
        assert cache.get("long") == "v"

    def test_zero_ttl_expires_on_next_tick(self, cache: TTLCache, clock) -> None:
        cache.set("k", "v", ttl=0)
        assert cache.get("k") == "v"
        clock.advance(0.001)
        assert cache.get("k") is None

    def test_is_expired_for_missing_key(self, cache: TTLCache) -> None:
        assert cache.is_expired("missing") is True

    def test_is_expired_tracks_age(self, cache: TTLCache, clock) -> None:
        cache.set("k", "v")
        assert cache.is_expired("k") is False
        clock.advance(1.5)
        assert cache.is_expired("k") is True

    def test_contains_respects_expiry(self, cache: TTLCache, clock) -> None:
        cache.set("k", "v")
        assert "k" in cache
        clock.advance(1.5)
        assert "k" not in cache
        assert 42 not in cache

    def test_none_value_is_indistinguishable_from_miss(self, cache: TTLCache) -> None:
        cache.set("k", None)
        assert cache.get("k") is None
        assert "k" in cache


# ------------------------------------------------------------------ #
# Sweeping
# ------------------------------------------------------------------ #


class TestCleanExpired:
    def test_removes_only_expired_entries(self, cache: TTLCache, clock) -> None:
        cache.set("short-1", 1, ttl=1)
        cache.set("short-2", 2, ttl=1)
        cache.set("long", 3, ttl=60)
        clock.advance(2)

        removed = cache.clean_expired()

        assert removed == 2
        assert cache.get_all_keys() == ["long"]
        assert cache.get("long") == 3

    def test_nothing_to_remove(self, cache: TTLCache) -> None:
        cache.set("k", "v")
        assert cache.clean_expired() == 0
        assert len(cache) == 1

    def test_empty_cache(self, cache: TTLCache) -> None:
        assert cache.clean_expired() == 0


# ------------------------------------------------------------------ #
# Bulk invalidation and introspection
# ------------------------------------------------------------------ #


class TestPrefixAndKeys:
    def test_get_all_keys(self, cache: TTLCache) -> None:
        cache.set("workitems:p1:Bug:page1:a", 1)
        cache.set("code_repos:g1:*:page1:b", 2)
        assert sorted(cache.get_all_keys()) == [
            "code_repos:g1:*:page1:b",
            "workitems:p1:Bug:page1:a",
        ]

    def test_delete_prefix(self, cache: TTLCache) -> None:
        cache.set("workitems:p1:Bug:page1:a", 1)
        cache.set("workitems:p1:Req:page1:a", 2)
        cache.set("workitems:p2:Bug:page1:a", 3)
        cache.set("projects:page1", 4)

        removed = cache.delete_prefix("workitems:p1:")

        assert removed == 2
        assert sorted(cache.get_all_keys()) == ["projects:page1", "workitems:p2:Bug:page1:a"]

    def test_delete_prefix_no_match(self, cache: TTLCache) -> None:
        cache.set("a", 1)
        assert cache.delete_prefix("zzz") == 0
        assert len(cache) == 1


class TestStats:
    def test_stats_counts_expired_entries(self, cache: TTLCache, clock) -> None:
        cache.set("a", 1)
        cache.set("b", 2, ttl=60)
        clock.advance(2)

        stats = cache.stats()

        assert stats == {"size": 2, "expired": 1, "default_ttl_seconds": 1.0}

    def test_stats_empty(self, cache: TTLCache) -> None:
        assert cache.stats()["size"] == 0
        assert cache.stats()["expired"] == 0
