"""Tests for browsekit.ranker -- scoring, capacity eviction, persistence."""

from __future__ import annotations

import math
from unittest.mock import MagicMock

import pytest

from browsekit.exceptions import StoreError
from browsekit.models import RankerConfig, RecentEntry, RecentItemType
from browsekit.ranker import (
    SECONDS_PER_DAY,
    RecencyRanker,
    compute_score,
    freq_score,
    time_score,
)
from browsekit.store import MemoryStore

PROJECT = RecentItemType.PROJECT
REPO = RecentItemType.CODE_REPO
STORAGE_KEY = "browsekit.recentItems"


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def ranker(store: MemoryStore, clock) -> RecencyRanker:
    return RecencyRanker(store, clock=clock)


# ---------------------------------------------------------------------------
# Score functions
# ---------------------------------------------------------------------------


class TestScoreFunctions:
    def test_time_score_now(self) -> None:
        assert time_score(100.0, 100.0) == 1.0

    def test_time_score_decays_by_e_per_decay_period(self) -> None:
        assert time_score(0.0, 7 * SECONDS_PER_DAY, decay_days=7) == pytest.approx(math.exp(-1))

    def test_time_score_clamped_for_future_timestamps(self) -> None:
        assert time_score(200.0, 100.0) == 1.0

    def test_freq_score(self) -> None:
        assert freq_score(1) == pytest.approx(math.log(2) / math.log(101))
        assert freq_score(100) == pytest.approx(1.0)

    def test_freq_score_saturates(self) -> None:
        assert freq_score(10_000) == 1.0

    def test_compute_score_weights(self) -> None:
        entry = RecentEntry(item_id="x", item_type=PROJECT, last_used_at=0.0, use_count=100)
        config = RankerConfig(time_weight=0.5, freq_weight=0.5)
        assert compute_score(entry, 0.0, config) == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestOrdering:
    def test_frequent_item_ranks_first_at_same_time(self, ranker: RecencyRanker) -> None:
        ranker.add_item("A", PROJECT)
        ranker.add_item("B", PROJECT)
        ranker.add_item("A", PROJECT)

        recent = ranker.get_recent(PROJECT)

        assert [e.item_id for e in recent] == ["A", "B"]
        assert recent[0].use_count == 2
        assert recent[0].score == pytest.approx(0.695, abs=1e-3)
        assert recent[1].score == pytest.approx(0.660, abs=1e-3)

    def test_recent_use_beats_old_frequent_use(self, ranker: RecencyRanker, clock) -> None:
        for _ in range(10):
            ranker.add_item("old-favourite", PROJECT)
        clock.advance(30 * SECONDS_PER_DAY)
        ranker.add_item("fresh", PROJECT)

        assert [e.item_id for e in ranker.get_recent(PROJECT)] == ["fresh", "old-favourite"]

    def test_limit(self, ranker: RecencyRanker) -> None:
        for item_id in ["a", "b", "c"]:
            ranker.add_item(item_id, PROJECT)
        assert len(ranker.get_recent(PROJECT, limit=2)) == 2

    def test_types_are_separate(self, ranker: RecencyRanker) -> None:
        ranker.add_item("same-id", PROJECT)
        ranker.add_item("same-id", REPO)

        assert len(ranker) == 2
        assert [e.item_type for e in ranker.get_recent(REPO)] == [REPO]

    def test_get_all_recent_is_globally_sorted(self, ranker: RecencyRanker, clock) -> None:
        ranker.add_item("p", PROJECT)
        clock.advance(SECONDS_PER_DAY)
        ranker.add_item("r", REPO)

        everything = ranker.get_all_recent()

        assert [e.item_id for e in everything] == ["r", "p"]
        assert everything[0].score > everything[1].score
        assert len(ranker.get_all_recent(limit=1)) == 1

    def test_reads_are_idempotent(self, ranker: RecencyRanker, clock) -> None:
        ranker.add_item("a", PROJECT)
        ranker.add_item("b", PROJECT)
        clock.advance(3 * SECONDS_PER_DAY)

        first = [(e.item_id, e.score) for e in ranker.get_recent(PROJECT)]
        second = [(e.item_id, e.score) for e in ranker.get_recent(PROJECT)]

        assert first == second

    def test_accepts_type_value_strings(self, ranker: RecencyRanker) -> None:
        ranker.add_item("k", "search-keyword")
        assert ranker.get_item("k", RecentItemType.SEARCH_KEYWORD) is not None


# ---------------------------------------------------------------------------
# add_item bookkeeping
# ---------------------------------------------------------------------------


class TestAddItem:
    def test_new_entry(self, ranker: RecencyRanker, clock) -> None:
        entry = ranker.add_item("p1", PROJECT, {"name": "Apollo"})

        assert entry.use_count == 1
        assert entry.last_used_at == clock.now
        assert entry.payload == {"name": "Apollo"}

    def test_repeat_use_increments_and_refreshes(self, ranker: RecencyRanker, clock) -> None:
        ranker.add_item("p1", PROJECT, {"name": "Apollo"})
        clock.advance(60)

        entry = ranker.add_item("p1", PROJECT, {"name": "Apollo 2"})

        assert entry.use_count == 2
        assert entry.last_used_at == clock.now
        assert entry.payload == {"name": "Apollo 2"}
        assert len(ranker) == 1

    def test_repeat_use_without_payload_keeps_payload(self, ranker: RecencyRanker) -> None:
        ranker.add_item("p1", PROJECT, {"name": "Apollo"})
        entry = ranker.add_item("p1", PROJECT)
        assert entry.payload == {"name": "Apollo"}

    def test_persists_after_write(self, ranker: RecencyRanker, store: MemoryStore) -> None:
        ranker.add_item("p1", PROJECT)

        saved = store.get(STORAGE_KEY)

        assert isinstance(saved, list)
        assert saved[0]["item_id"] == "p1"
        assert saved[0]["item_type"] == "project"


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------


class TestCapacity:
    def _ranker(self, store: MemoryStore, clock, capacity: int) -> RecencyRanker:
        config = RankerConfig(capacities={PROJECT: capacity})
        return RecencyRanker(store, config, clock=clock)

    def test_overflow_evicts_lowest_scorer(self, store: MemoryStore, clock) -> None:
        ranker = self._ranker(store, clock, capacity=3)
        for item_id in ["p1", "p2", "p3"]:
            ranker.add_item(item_id, PROJECT)
            clock.advance(SECONDS_PER_DAY)

        ranker.add_item("p4", PROJECT)

        kept = {e.item_id for e in ranker.get_recent(PROJECT)}
        assert kept == {"p2", "p3", "p4"}
        assert len(ranker.get_recent(PROJECT)) == 3

    def test_new_entry_scoring_lowest_is_evicted(self, store: MemoryStore, clock) -> None:
        ranker = self._ranker(store, clock, capacity=2)
        for _ in range(3):
            ranker.add_item("p1", PROJECT)
            ranker.add_item("p2", PROJECT)

        entry = ranker.add_item("p3", PROJECT)

        assert entry.item_id == "p3"
        assert ranker.get_item("p3", PROJECT) is None
        assert {e.item_id for e in ranker.get_recent(PROJECT)} == {"p1", "p2"}

    def test_capacity_is_per_type(self, store: MemoryStore, clock) -> None:
        ranker = self._ranker(store, clock, capacity=1)
        ranker.add_item("p1", PROJECT)
        ranker.add_item("r1", REPO)
        ranker.add_item("r2", REPO)

        assert len(ranker.get_recent(PROJECT)) == 1
        assert len(ranker.get_recent(REPO)) == 2

    def test_default_capacities(self) -> None:
        config = RankerConfig()
        assert config.capacity_for(RecentItemType.WORK_ITEM) == 50
        assert config.capacity_for(RecentItemType.SEARCH_KEYWORD) == 10
        assert RankerConfig(capacities={}).capacity_for(PROJECT) == 20


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------


class TestRemoval:
    def test_remove_item(self, ranker: RecencyRanker, store: MemoryStore) -> None:
        ranker.add_item("p1", PROJECT)
        assert ranker.remove_item("p1", PROJECT) is True
        assert ranker.get_item("p1", PROJECT) is None
        assert store.get(STORAGE_KEY) == []

    def test_remove_missing(self, ranker: RecencyRanker) -> None:
        assert ranker.remove_item("nope", PROJECT) is False

    def test_clear_by_type(self, ranker: RecencyRanker) -> None:
        ranker.add_item("p1", PROJECT)
        ranker.add_item("p2", PROJECT)
        ranker.add_item("r1", REPO)

        assert ranker.clear_by_type(PROJECT) == 2
        assert [e.item_id for e in ranker.get_all_recent()] == ["r1"]

    def test_clear(self, ranker: RecencyRanker, store: MemoryStore) -> None:
        ranker.add_item("p1", PROJECT)
        ranker.clear()
        assert len(ranker) == 0
        assert store.get(STORAGE_KEY) == []


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    def test_reload_rescores(self, store: MemoryStore, clock) -> None:
        RecencyRanker(store, clock=clock).add_item("p1", PROJECT)
        clock.advance(7 * SECONDS_PER_DAY)

        reloaded = RecencyRanker(store, clock=clock)

        [entry] = reloaded.get_recent(PROJECT)
        expected = 0.6 * math.exp(-1) + 0.4 * math.log(2) / math.log(101)
        assert entry.score == pytest.approx(expected)

    def test_malformed_registry_is_ignored(self, clock) -> None:
        store = MemoryStore({STORAGE_KEY: {"not": "a list"}})
        assert len(RecencyRanker(store, clock=clock)) == 0

    def test_invalid_rows_are_skipped(self, clock) -> None:
        rows = [
            {"item_id": "ok", "item_type": "project", "last_used_at": clock.now, "use_count": 1},
            {"item_id": "bad-type", "item_type": "galaxy", "last_used_at": clock.now},
            {"item_type": "project", "last_used_at": clock.now},
        ]
        ranker = RecencyRanker(MemoryStore({STORAGE_KEY: rows}), clock=clock)
        assert [e.item_id for e in ranker.get_all_recent()] == ["ok"]

    def test_custom_storage_key(self, store: MemoryStore, clock) -> None:
        ranker = RecencyRanker(store, RankerConfig(storage_key="other"), clock=clock)
        ranker.add_item("p1", PROJECT)
        assert store.get("other") is not None
        assert STORAGE_KEY not in store

    def test_load_failure_starts_empty(self, clock, caplog: pytest.LogCaptureFixture) -> None:
        store = MagicMock()
        store.get.side_effect = StoreError("disk on fire")

        ranker = RecencyRanker(store, clock=clock)

        assert len(ranker) == 0
        assert "disk on fire" in caplog.text

    def test_save_failure_keeps_working_in_memory(self, clock) -> None:
        store = MagicMock()
        store.get.return_value = []
        store.set.side_effect = StoreError("read-only filesystem")

        ranker = RecencyRanker(store, clock=clock)
        ranker.add_item("p1", PROJECT)

        assert ranker.get_item("p1", PROJECT) is not None
        store.set.assert_called_once()


# ---------------------------------------------------------------------------
# Statistics, export and import
# ---------------------------------------------------------------------------


class TestStatistics:
    def test_statistics(self, ranker: RecencyRanker) -> None:
        ranker.add_item("p1", PROJECT)
        ranker.add_item("p2", PROJECT)
        ranker.add_item("p2", PROJECT)

        stats = ranker.statistics()

        assert stats["total"] == 2
        assert stats["by_type"]["project"]["count"] == 2
        assert stats["by_type"]["project"]["top"]["item_id"] == "p2"
        assert stats["by_type"]["code-branch"] == {"count": 0, "top": None}
        assert set(stats["by_type"]) == {t.value for t in RecentItemType}


class TestExportImport:
    def test_export_is_json_ready(self, ranker: RecencyRanker) -> None:
        ranker.add_item("p1", PROJECT, {"name": "Apollo"})

        [row] = ranker.export_items()

        assert row["item_type"] == "project"
        assert row["payload"] == {"name": "Apollo"}
        assert row["use_count"] == 1

    def test_import_replaces_registry(self, ranker: RecencyRanker, clock) -> None:
        source = RecencyRanker(MemoryStore(), clock=clock)
        source.add_item("r1", REPO)
        source.add_item("r1", REPO)
        ranker.add_item("p1", PROJECT)

        kept = ranker.import_items(source.export_items())

        assert kept == 1
        assert ranker.get_item("p1", PROJECT) is None
        assert ranker.get_item("r1", REPO).use_count == 2

    def test_import_skips_duplicates_and_invalid_rows(self, ranker: RecencyRanker, clock) -> None:
        row = {"item_id": "r1", "item_type": "code-repo", "last_used_at": clock.now}
        kept = ranker.import_items([row, dict(row), {"item_id": "x"}, "garbage"])
        assert kept == 1

    def test_import_enforces_capacity(self, store: MemoryStore, clock) -> None:
        ranker = RecencyRanker(store, RankerConfig(capacities={PROJECT: 2}), clock=clock)
        rows = [
            {"item_id": f"p{i}", "item_type": "project", "last_used_at": clock.now - i * SECONDS_PER_DAY}
            for i in range(5)
        ]

        assert ranker.import_items(rows) == 2
        assert {e.item_id for e in ranker.get_recent(PROJECT)} == {"p0", "p1"}

    def test_import_accepts_entries(self, ranker: RecencyRanker, clock) -> None:
        entry = RecentEntry(item_id="k", item_type="search-keyword", last_used_at=clock.now)
        assert ranker.import_items([entry]) == 1
        assert ranker.get_item("k", RecentItemType.SEARCH_KEYWORD) is not entry
