"""Recency/frequency ranking of recently used entities.

:class:`RecencyRanker` keeps, per :class:`~browsekit.models.RecentItemType`,
a bounded registry of recently used entities ordered by a composite score::

    score      = time_weight * time_score + freq_weight * freq_score
    time_score = clamp(exp(-days_since_last_use / decay_days), 0, 1)
    freq_score = clamp(ln(1 + use_count) / ln(1 + max_count), 0, 1)

The recency term decays exponentially, the frequency term grows
logarithmically, so an item used once a minute ago and an item used fifty
times last week both stay visible while neither dominates forever.

Scores depend on the current time, so every write rescores and re-sorts the
whole registry; reads are plain slices of the sorted list.  At the intended
scale (tens of entries per type) the O(n log n) write is negligible.

The registry is persisted to a :class:`~browsekit.store.KeyValueStore`
after every write.  Store failures are logged and otherwise ignored: the
ranking only affects presentation order, so the ranker keeps working in
memory.
"""

from __future__ import annotations

import logging
import math
import time
from collections import Counter
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from browsekit.exceptions import StoreError
from browsekit.models import RankerConfig, RecentEntry, RecentItemType
from browsekit.store import KeyValueStore

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def time_score(last_used_at: float, now: float, decay_days: float = 7) -> float:
    """Exponentially decaying recency term in ``[0, 1]``."""
    days = (now - last_used_at) / SECONDS_PER_DAY
    return _clamp(math.exp(-days / decay_days))


def freq_score(use_count: int, max_count: int = 100) -> float:
    """Logarithmic frequency term in ``[0, 1]``, saturating at *max_count* uses."""
    return _clamp(math.log(1 + use_count) / math.log(1 + max_count))


def compute_score(entry: RecentEntry, now: float, config: RankerConfig) -> float:
    """Weighted blend of :func:`time_score` and :func:`freq_score` for *entry*."""
    return (
        config.time_weight * time_score(entry.last_used_at, now, config.decay_days)
        + config.freq_weight * freq_score(entry.use_count, config.max_count)
    )


class RecencyRanker:
    """Bounded, score-sorted registry of recently used entities.

    Entries are identified by ``(item_id, item_type)``.  The registry is
    loaded from *store* on construction and rescored once, since time has
    passed since it was written.

    Args:
        store: Durable store holding the registry under
            ``config.storage_key``.
        config: Weights, decay, saturation and per-type capacities.
        clock: Zero-argument callable returning POSIX seconds.  Defaults to
            :func:`time.time`.

    Example::

        ranker = RecencyRanker(DiskStore(get_data_dir()))
        ranker.add_item("proj-1", RecentItemType.PROJECT, {"name": "Apollo"})
        ranker.get_recent(RecentItemType.PROJECT, limit=5)
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[RankerConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._store = store
        self._config = config or RankerConfig()
        self._clock = clock or time.time
        self._items: list[RecentEntry] = []
        self._load()

    @property
    def config(self) -> RankerConfig:
        return self._config

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def add_item(self, item_id: str, item_type: RecentItemType, payload: Any = None) -> RecentEntry:
        """Record a use of ``(item_id, item_type)``.

        A known entry gets ``use_count + 1``, a fresh ``last_used_at`` and,
        when *payload* is given, the new payload.  An unknown entry is
        created with ``use_count = 1``.  The type is then trimmed to its
        capacity by evicting the lowest scores, the whole registry is
        rescored and sorted, and the result persisted.

        Returns:
            The recorded entry.  If a new entry scored lowest of its type
            it is evicted immediately but still returned.
        """
        item_type = RecentItemType(item_type)
        now = self._clock()
        entry = self.get_item(item_id, item_type)
        if entry is not None:
            entry.use_count += 1
            entry.last_used_at = now
            if payload is not None:
                entry.payload = payload
        else:
            entry = RecentEntry(
                item_id=item_id,
                item_type=item_type,
                last_used_at=now,
                use_count=1,
                payload=payload,
            )
            self._items.append(entry)

        self._enforce_capacity(item_type, now)
        self._rescore(now)
        self._save()
        return entry

    def remove_item(self, item_id: str, item_type: RecentItemType) -> bool:
        """Remove one entry.  Returns ``True`` if it existed."""
        item_type = RecentItemType(item_type)
        before = len(self._items)
        self._items = [
            e for e in self._items if not (e.item_id == item_id and e.item_type == item_type)
        ]
        removed = len(self._items) != before
        if removed:
            self._save()
        return removed

    def clear(self) -> None:
        """Remove every entry of every type."""
        self._items = []
        self._save()

    def clear_by_type(self, item_type: RecentItemType) -> int:
        """Remove every entry of *item_type* and return how many were removed."""
        item_type = RecentItemType(item_type)
        before = len(self._items)
        self._items = [e for e in self._items if e.item_type != item_type]
        self._save()
        return before - len(self._items)

    def import_items(self, items: Iterable[Any]) -> int:
        """Replace the registry with *items* (dicts or :class:`RecentEntry`).

        Invalid rows are skipped with a warning.  Imported entries are
        rescored, trimmed to capacity and persisted.

        Returns:
            The number of entries kept.
        """
        self._items = self._validate_rows(items)
        now = self._clock()
        for item_type in RecentItemType:
            self._enforce_capacity(item_type, now)
        self._rescore(now)
        self._save()
        return len(self._items)

    # ------------------------------------------------------------------ #
    # Reads (no rescoring)
    # ------------------------------------------------------------------ #

    def get_recent(self, item_type: RecentItemType, limit: Optional[int] = None) -> list[RecentEntry]:
        """Return the highest-scoring entries of *item_type*, best first.

        ``limit=None`` returns all entries of the type.
        """
        item_type = RecentItemType(item_type)
        matching = [e for e in self._items if e.item_type == item_type]
        return matching if limit is None else matching[:limit]

    def get_all_recent(self, limit: Optional[int] = None) -> list[RecentEntry]:
        """Return entries of all types in global score order."""
        return list(self._items) if limit is None else self._items[:limit]

    def get_item(self, item_id: str, item_type: RecentItemType) -> Optional[RecentEntry]:
        item_type = RecentItemType(item_type)
        for entry in self._items:
            if entry.item_id == item_id and entry.item_type == item_type:
                return entry
        return None

    def statistics(self) -> dict[str, Any]:
        """Per-type counts and the top-ranked entry of each type.

        Returns:
            ``{"total": int, "by_type": {type: {"count": int, "top": entry | None}}}``
            where ``top`` is a JSON-ready dict.
        """
        counts = Counter(e.item_type for e in self._items)
        by_type: dict[str, Any] = {}
        for item_type in RecentItemType:
            top = self.get_recent(item_type, limit=1)
            by_type[item_type.value] = {
                "count": counts.get(item_type, 0),
                "top": top[0].model_dump(mode="json") if top else None,
            }
        return {"total": len(self._items), "by_type": by_type}

    def export_items(self) -> list[dict[str, Any]]:
        """Return the registry as JSON-ready dicts, in score order."""
        return [e.model_dump(mode="json") for e in self._items]

    def __len__(self) -> int:
        return len(self._items)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _enforce_capacity(self, item_type: RecentItemType, now: float) -> None:
        capacity = self._config.capacity_for(item_type)
        of_type = [e for e in self._items if e.item_type == item_type]
        overflow = len(of_type) - capacity
        if overflow <= 0:
            return
        for entry in of_type:
            entry.score = compute_score(entry, now, self._config)
        of_type.sort(key=lambda e: e.score)
        evicted = {id(e) for e in of_type[:overflow]}
        self._items = [e for e in self._items if id(e) not in evicted]
        logger.debug("Evicted %d %s entries over capacity %d", overflow, item_type.value, capacity)

    def _rescore(self, now: float) -> None:
        for entry in self._items:
            entry.score = compute_score(entry, now, self._config)
        self._items.sort(key=lambda e: e.score, reverse=True)

    def _validate_rows(self, rows: Iterable[Any]) -> list[RecentEntry]:
        entries: list[RecentEntry] = []
        seen: set[tuple[str, RecentItemType]] = set()
        for row in rows:
            try:
                entry = row.model_copy() if isinstance(row, RecentEntry) else RecentEntry.model_validate(row)
            except ValidationError as exc:
                logger.warning("Skipping invalid recent item %r: %s", row, exc.errors()[0]["msg"])
                continue
            key = (entry.item_id, entry.item_type)
            if key in seen:
                logger.warning("Skipping duplicate recent item %s/%s", entry.item_type.value, entry.item_id)
                continue
            seen.add(key)
            entries.append(entry)
        return entries

    def _load(self) -> None:
        try:
            saved = self._store.get(self._config.storage_key, [])
        except StoreError as exc:
            logger.warning("Could not load recent items, starting empty: %s", exc)
            saved = []
        if not isinstance(saved, list):
            logger.warning("Ignoring malformed recent items registry of type %s", type(saved).__name__)
            saved = []
        self._items = self._validate_rows(saved)
        self._rescore(self._clock())
        logger.info("Loaded %d recent items", len(self._items))

    def _save(self) -> None:
        try:
            self._store.set(self._config.storage_key, self.export_items())
        except StoreError as exc:
            logger.warning("Could not persist recent items, keeping them in memory: %s", exc)
