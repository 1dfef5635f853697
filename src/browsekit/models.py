"""Canonical Pydantic models shared across all browsekit modules.

This is the single source of truth for data shapes in the project.  The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`PaginationConfig`, :class:`RankerConfig`
    and :class:`GlobalConfig`.

**Runtime models** -- produced and consumed by the cache, paginator and
ranker:
    :class:`RecentItemType`, :class:`RecentEntry`, :class:`BucketKey`,
    :class:`Page`, :class:`PageResult` and :class:`LoadProgress`.

All models use Pydantic v2.  Timestamps are POSIX seconds (``float``) as
returned by :func:`time.time`, and durations are seconds.
"""

from __future__ import annotations

import enum
from typing import Any, NamedTuple, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


ALL_CATEGORIES = "*"
"""Category sentinel for flat (ungrouped) buckets such as "all repositories"."""


# --- Recent items ---


class RecentItemType(str, enum.Enum):
    """Kinds of entity tracked by the :class:`~browsekit.ranker.RecencyRanker`.

    The values are the identifiers used in the persisted registry, so they
    must stay stable across releases.
    """

    PROJECT = "project"
    WORK_ITEM = "workitem"
    SEARCH_KEYWORD = "search-keyword"
    CODE_GROUP = "code-group"
    CODE_REPO = "code-repo"
    CODE_BRANCH = "code-branch"


def _default_capacities() -> dict[RecentItemType, int]:
    return {
        RecentItemType.PROJECT: 20,
        RecentItemType.WORK_ITEM: 50,
        RecentItemType.SEARCH_KEYWORD: 10,
        RecentItemType.CODE_GROUP: 10,
        RecentItemType.CODE_REPO: 20,
        RecentItemType.CODE_BRANCH: 30,
    }


class RecentEntry(BaseModel):
    """One entry of the recently-used registry.

    ``score`` is derived data: it is recomputed from ``last_used_at`` and
    ``use_count`` on every write and after loading, and is only stored so
    that reads can be served from the already-sorted list.

    Attributes:
        item_id: Identifier of the entity (project id, branch name, search
            keyword, ...).
        item_type: Which kind of entity this is.
        last_used_at: POSIX timestamp of the most recent use.
        use_count: Number of recorded uses, at least 1.
        score: Cached recency/frequency score in ``[0, 1]``.
        payload: Last-known snapshot of the entity for display without a
            re-fetch.
    """

    item_id: str
    item_type: RecentItemType
    last_used_at: float
    use_count: int = Field(default=1, ge=1)
    score: float = 0.0
    payload: Any = None


# --- Pagination ---


class BucketKey(NamedTuple):
    """Structured key of a pagination bucket.

    A bucket is one category inside one collection (e.g. the ``Bug``
    category of a project) or, with the :data:`ALL_CATEGORIES` sentinel,
    a flat view over the whole collection.
    """

    collection_id: str
    category: str = ALL_CATEGORIES

    def __str__(self) -> str:
        return f"{self.collection_id}/{self.category}"


class Page(BaseModel):
    """One page as returned by a :class:`~browsekit.paginator.RemoteFetcher`.

    ``total`` is whatever the server reported and may be ``0`` even when
    items were returned.  Mappings using ``hasMore`` are accepted as well.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: list[Any] = Field(default_factory=list)
    total: int = 0
    has_more: bool = Field(
        default=False, validation_alias=AliasChoices("has_more", "hasMore")
    )


class PageResult(BaseModel):
    """Result of :meth:`~browsekit.paginator.CategoryPaginator.load_next_page`.

    ``items`` holds only the newly fetched page.  A terminal bucket yields
    ``items=[]`` and ``has_more=False``; that is a normal outcome, not an
    error.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: list[Any] = Field(default_factory=list)
    has_more: bool = False
    loaded: int = 0
    total: int = 0
    current_page: int = 1


class LoadProgress(BaseModel):
    """Progress of a bucket, as shown by "loaded 50 of 230" style UIs."""

    loaded: int = 0
    total: int = 0
    percentage: int = 0
    current_page: int = 0
    has_more: bool = False


# --- Configuration ---


def _default_ttl_overrides() -> dict[str, int]:
    return {
        "projects": 30 * 60,
        "workitems": 10 * 60,
        "workitem_types": 24 * 60 * 60,
        "workitem_detail": 5 * 60,
        "code_groups": 10 * 60,
        "code_repos": 10 * 60,
        "code_branches": 5 * 60,
    }


class CacheConfig(BaseModel):
    """TTL cache settings stored in :class:`GlobalConfig`."""

    default_ttl_seconds: float = Field(
        default=30 * 60, gt=0, description="TTL used when a domain has no override"
    )
    sweep_interval_seconds: float = Field(
        default=5 * 60, gt=0, description="Interval between proactive expiry sweeps"
    )
    ttl_overrides: dict[str, float] = Field(
        default_factory=_default_ttl_overrides,
        description="Per-domain TTLs in seconds (e.g. workitems, code_repos)",
    )

    def ttl_for(self, domain: Optional[str]) -> float:
        """Return the TTL for *domain*, falling back to the default TTL."""
        if domain is None:
            return self.default_ttl_seconds
        return self.ttl_overrides.get(domain, self.default_ttl_seconds)


class PaginationConfig(BaseModel):
    """Incremental loading settings stored in :class:`GlobalConfig`."""

    page_size: int = Field(default=50, ge=1, description="Items requested per page")


class RankerConfig(BaseModel):
    """Recency/frequency ranking settings stored in :class:`GlobalConfig`.

    See :func:`~browsekit.ranker.compute_score` for how the constants are
    combined.
    """

    time_weight: float = Field(default=0.6, ge=0, description="Weight of the recency term")
    freq_weight: float = Field(default=0.4, ge=0, description="Weight of the frequency term")
    decay_days: float = Field(
        default=7, gt=0, description="Days for the recency term to decay by 1/e"
    )
    max_count: int = Field(
        default=100, ge=1, description="Use count at which the frequency term saturates"
    )
    capacities: dict[RecentItemType, int] = Field(
        default_factory=_default_capacities,
        description="Maximum number of entries kept per item type",
    )
    storage_key: str = Field(
        default="browsekit.recentItems",
        description="Durable store key holding the registry",
    )

    def capacity_for(self, item_type: RecentItemType) -> int:
        """Return the capacity of *item_type* (types missing from ``capacities`` use the defaults)."""
        if item_type in self.capacities:
            return self.capacities[item_type]
        return _default_capacities()[item_type]


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/browsekit/config.json``.

    Loaded and saved by :func:`~browsekit.config.load_global_config` and
    :func:`~browsekit.config.save_global_config`.  Environment variables
    override individual fields; see :func:`~browsekit.config.resolve_config`.
    """

    cache: CacheConfig = Field(default_factory=CacheConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    ranker: RankerConfig = Field(default_factory=RankerConfig)
