"""Incremental, per-category pagination over a remote collection.

:class:`CategoryPaginator` lets a UI reveal a large remote collection page by
page.  Every *bucket* -- one category of one collection, or a flat
``ALL_CATEGORIES`` view -- owns an independent :class:`PaginationState`:

* :meth:`~CategoryPaginator.initialize` loads page 1.  Only this first page
  is memoized in the :class:`~browsekit.cache.TTLCache`, keyed by bucket and
  filter shape; deeper pages are always fetched fresh.
* :meth:`~CategoryPaginator.load_next_page` fetches ``current_page + 1``
  with the filter the bucket was initialized with and appends it.  Items
  are never re-sorted or de-duplicated; the collection order is the
  concatenation of the page orders returned by the fetcher.
* ``has_more=False`` is terminal: further calls return an empty result
  without touching the network until the bucket is reset.

Concurrency: calls run inside one event loop.  ``load_next_page`` holds a
per-bucket :class:`asyncio.Lock` for the whole fetch, so concurrent calls
load consecutive pages instead of the same page twice.  Every load is tagged
with a generation number that is never reused; a reset forgets the bucket's
generation, and a fetch that completes under an older one is discarded with
:class:`~browsekit.exceptions.StaleResponseError`.

Filters: the filter is bound at initialization.  Re-initializing with another
filter starts the bucket over (the memoized first page is keyed by filter
shape); passing a different filter to ``load_next_page`` raises
:class:`~browsekit.exceptions.FilterMismatchError`.

Example::

    paginator = CategoryPaginator(fetcher, cache, categories=["Req", "Bug"])
    bucket = BucketKey("project-1", "Bug")
    first = await paginator.initialize(bucket, {"keyword": "login"})
    more = await paginator.load_next_page(bucket)
    paginator.progress(bucket)   # LoadProgress(loaded=100, total=230, ...)
"""

from __future__ import annotations

import asyncio
import dataclasses
import hashlib
import itertools
import json
import logging
import math
from urllib.parse import quote
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence, Union

from browsekit.cache import TTLCache
from browsekit.exceptions import (
    BrowsekitError,
    FilterMismatchError,
    NotInitializedError,
    RemoteFetchError,
    StaleResponseError,
)
from browsekit.models import ALL_CATEGORIES, BucketKey, LoadProgress, Page, PageResult

logger = logging.getLogger(__name__)

PageTransform = Callable[[BucketKey, list[Any]], list[Any]]


class RemoteFetcher(Protocol):
    """Source of pages for a :class:`CategoryPaginator`.

    ``fetch_page`` receives the bucket being loaded, the bucket's filter,
    the 1-based page number and the page size, and returns a
    :class:`~browsekit.models.Page` (or a mapping with ``items``, ``total``
    and ``has_more``).  Building the actual request from bucket and filter,
    and enforcing timeouts, is up to the fetcher.  Any exception it raises
    is reported to callers as :class:`~browsekit.exceptions.RemoteFetchError`.
    """

    def fetch_page(
        self,
        bucket: BucketKey,
        filter: Mapping[str, Any],
        page: int,
        page_size: int,
    ) -> Awaitable[Union[Page, Mapping[str, Any]]]: ...


@dataclass
class PaginationState:
    """Accumulated pages of one bucket.

    Attributes:
        bucket: The bucket this state belongs to.
        page_size: Items requested per page.
        filter: Filter bound at initialization and reused for every page.
        current_page: Last page fetched (1-based).
        has_more: ``False`` once the bucket is exhausted.
        total: Server-reported total, or the loaded count when the server
            reported ``0`` for a non-empty page.
        items: All items fetched so far, in fetch order.
    """

    bucket: BucketKey
    page_size: int
    filter: dict[str, Any] = field(default_factory=dict)
    current_page: int = 1
    has_more: bool = False
    total: int = 0
    items: list[Any] = field(default_factory=list)


def _reconcile(page: Page, items: list[Any], loaded: int, page_size: int) -> tuple[int, bool]:
    """Return ``(total, has_more)`` for a freshly fetched page.

    Servers sometimes report ``total == 0`` alongside a non-empty page.  In
    that case the loaded count stands in for the total and a full page is
    taken to mean more pages exist.  An empty page always ends the bucket.
    """
    if not items:
        return max(page.total, loaded), False
    if page.total == 0:
        logger.debug(
            "Server reported total=0 for %d items; using loaded count %d", len(items), loaded
        )
        return loaded, len(items) == page_size
    return page.total, page.has_more


def _key_part(value: str) -> str:
    """Percent-encode one cache key segment so ``:`` inside ids cannot collide."""
    return quote(value, safe="")


def _filter_digest(filter: Mapping[str, Any]) -> str:
    raw = json.dumps(filter, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


class CategoryPaginator:
    """Fetch-and-accumulate state machine over many buckets.

    Args:
        fetcher: The :class:`RemoteFetcher` supplying pages.
        cache: Cache used to memoize first pages.  It may be shared with
            other consumers; this paginator only touches keys under
            *namespace*.
        categories: Categories of a collection, used by
            :meth:`initialize_categories` and the per-collection helpers.
        page_size: Items requested per page (``PaginationConfig.page_size``).
        first_page_ttl: TTL of memoized first pages in seconds.  ``None``
            uses the cache's default TTL.
        namespace: Prefix of this paginator's cache keys, e.g.
            ``"workitems"`` or ``"code_repos"``.
        transform: Optional hook applied to every fetched page before it is
            stored, and again to a memoized first page when it is restored
            (the cache holds the raw page).  Typical uses are ordering items
            by name when the endpoint cannot, or flagging favorites with
            :meth:`~browsekit.favorites.FavoritesRegistry.transform`.
    """

    def __init__(
        self,
        fetcher: RemoteFetcher,
        cache: TTLCache,
        categories: Sequence[str] = (),
        page_size: int = 50,
        first_page_ttl: Optional[float] = None,
        namespace: str = "pages",
        transform: Optional[PageTransform] = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._fetcher = fetcher
        self._cache = cache
        self._categories = list(categories)
        self._page_size = page_size
        self._ttl = first_page_ttl
        self._namespace = namespace
        self._transform = transform
        self._states: dict[BucketKey, PaginationState] = {}
        self._generations: dict[BucketKey, int] = {}
        self._generation_counter = itertools.count(1)
        self._locks: dict[BucketKey, asyncio.Lock] = {}
        self._pending: dict[BucketKey, tuple[str, asyncio.Future[list[Any]]]] = {}

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def categories(self) -> list[str]:
        return list(self._categories)

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #

    async def initialize(
        self,
        bucket: BucketKey,
        filter: Optional[Mapping[str, Any]] = None,
        force_refresh: bool = False,
    ) -> list[Any]:
        """Load the first page of *bucket* and return its items.

        Without *force_refresh* a memoized first page for the same bucket
        and filter is restored without a network call, and a concurrent
        initialization of the same bucket and filter is joined instead of
        fetching twice.  Either way any pages loaded beyond the first are
        dropped.

        Args:
            bucket: The bucket to (re)initialize.
            filter: Filter bound to the bucket for all later pages.
            force_refresh: Drop current state and the memoized first page
                and fetch again even if the filter is unchanged.

        Returns:
            The items of page 1.

        Raises:
            RemoteFetchError: The fetch failed.  The bucket is left
                uninitialized and the call can simply be retried.
            StaleResponseError: The bucket was reset or re-initialized with
                another filter while this fetch was outstanding.
        """
        bound = dict(filter or {})
        key = self._cache_key(bucket, bound)

        if force_refresh:
            logger.debug("Force refresh of bucket %s", bucket)
            self._drop(bucket)
            self._cache.delete(key)
        else:
            cached = self._cache.get(key)
            if cached is not None:
                state = self._restore(bucket, cached)
                logger.debug(
                    "Restored bucket %s from cache: %d items, has_more=%s",
                    bucket, len(state.items), state.has_more,
                )
                return list(state.items)
            pending = self._pending.get(bucket)
            if pending is not None and pending[0] == key:
                logger.debug("Joining in-flight initialization of bucket %s", bucket)
                return list(await asyncio.shield(pending[1]))

        generation = self._bump(bucket)
        self._states.pop(bucket, None)
        task = asyncio.ensure_future(self._load_first_page(bucket, bound, key, generation))
        self._pending[bucket] = (key, task)
        try:
            return list(await asyncio.shield(task))
        finally:
            current = self._pending.get(bucket)
            if current is not None and current[1] is task:
                del self._pending[bucket]

    async def initialize_categories(
        self,
        collection_id: str,
        filter: Optional[Mapping[str, Any]] = None,
        force_refresh: bool = False,
    ) -> list[Any]:
        """Initialize one bucket per configured category of *collection_id*.

        All categories are attempted even if some fail.  Categories that
        loaded stay initialized.

        Returns:
            First-page items of every category, concatenated in category
            order.

        Raises:
            RemoteFetchError: One or more categories failed; the message
                names them and the first failure is chained.
        """
        buckets = [BucketKey(collection_id, category) for category in self._categories]
        results = await asyncio.gather(
            *(self.initialize(bucket, filter, force_refresh) for bucket in buckets),
            return_exceptions=True,
        )

        items: list[Any] = []
        failures: list[tuple[BucketKey, RemoteFetchError]] = []
        for bucket, result in zip(buckets, results):
            if isinstance(result, RemoteFetchError):
                failures.append((bucket, result))
            elif isinstance(result, BaseException):
                raise result
            else:
                items.extend(result)

        logger.info(
            "Initialized %d/%d categories of %s: %d items",
            len(buckets) - len(failures), len(buckets), collection_id, len(items),
        )
        if failures:
            names = ", ".join(bucket.category for bucket, _ in failures)
            first = failures[0][1]
            raise RemoteFetchError(f"Failed to load categories {names}: {first}") from first
        return items

    async def load_next_page(
        self,
        bucket: BucketKey,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> PageResult:
        """Fetch the next page of *bucket* and append it.

        Args:
            bucket: An initialized bucket.
            filter: The filter the caller believes is active.  When given,
                it must equal the bucket's bound filter.

        Returns:
            The new page with running totals.  A terminal bucket returns
            ``items=[]``, ``has_more=False`` without fetching.

        Raises:
            NotInitializedError: The bucket was never initialized (or was
                reset).
            FilterMismatchError: *filter* differs from the bound filter.
            RemoteFetchError: The fetch failed; state is unchanged.
            StaleResponseError: The bucket was reset while fetching; the
                page was discarded.
        """
        lock = self._locks.get(bucket)
        if lock is None:
            lock = self._locks[bucket] = asyncio.Lock()
        async with lock:
            state = self._states.get(bucket)
            if state is None:
                raise NotInitializedError(
                    f"Bucket {bucket} is not initialized; call initialize() first"
                )
            if filter is not None and dict(filter) != state.filter:
                raise FilterMismatchError(
                    f"Bucket {bucket} was initialized with filter {state.filter!r}, "
                    f"not {dict(filter)!r}; re-initialize with force_refresh=True"
                )
            if not state.has_more:
                return self._result(state, [])

            generation = self._generations.get(bucket, 0)
            next_page = state.current_page + 1
            page = await self._fetch(bucket, state.filter, next_page)
            if self._generations.get(bucket, 0) != generation or self._states.get(bucket) is not state:
                logger.warning("Discarding page %d of bucket %s: bucket was reset", next_page, bucket)
                raise StaleResponseError(f"Bucket {bucket} was reset while page {next_page} was loading")

            items = self._apply_transform(bucket, page.items)
            total, has_more = _reconcile(page, items, len(state.items) + len(items), state.page_size)
            state.items.extend(items)
            state.current_page = next_page
            state.total = total
            state.has_more = has_more
            logger.debug(
                "Loaded page %d of bucket %s: %d items, total=%d, has_more=%s",
                next_page, bucket, len(items), total, has_more,
            )
            return self._result(state, items)

    # ------------------------------------------------------------------ #
    # Accessors (never fetch)
    # ------------------------------------------------------------------ #

    def get_loaded(self, bucket: BucketKey) -> list[Any]:
        """Return all items loaded so far for *bucket*, or ``[]`` if uninitialized."""
        state = self._states.get(bucket)
        return list(state.items) if state else []

    def get_loaded_for_collection(self, collection_id: str) -> list[Any]:
        """Return the loaded items of every category of *collection_id*, in category order.

        Without configured categories the flat ``ALL_CATEGORIES`` bucket is
        returned instead.
        """
        items: list[Any] = []
        for bucket in self._collection_buckets(collection_id):
            items.extend(self.get_loaded(bucket))
        return items

    def has_more(self, bucket: BucketKey) -> bool:
        """Whether *bucket* has more pages.  ``False`` for uninitialized buckets."""
        state = self._states.get(bucket)
        return state.has_more if state else False

    def is_initialized(self, bucket: BucketKey) -> bool:
        return bucket in self._states

    def is_fully_loaded(self, collection_id: str) -> bool:
        """Whether every bucket of *collection_id* is initialized and exhausted."""
        for bucket in self._collection_buckets(collection_id):
            state = self._states.get(bucket)
            if state is None or state.has_more:
                return False
        return True

    def progress(self, bucket: BucketKey) -> LoadProgress:
        """Return loaded/total counts for *bucket*; zeros when uninitialized."""
        state = self._states.get(bucket)
        if state is None:
            return LoadProgress()
        loaded = len(state.items)
        percentage = math.floor(loaded * 100 / state.total + 0.5) if state.total > 0 else 0
        return LoadProgress(
            loaded=loaded,
            total=state.total,
            percentage=percentage,
            current_page=state.current_page,
            has_more=state.has_more,
        )

    def get_state(self, bucket: BucketKey) -> Optional[PaginationState]:
        """Return a snapshot of the state of *bucket*, or ``None``."""
        state = self._states.get(bucket)
        if state is None:
            return None
        return dataclasses.replace(state, filter=dict(state.filter), items=list(state.items))

    # ------------------------------------------------------------------ #
    # Invalidation
    # ------------------------------------------------------------------ #

    def reset(self, bucket: BucketKey) -> None:
        """Forget *bucket* and its memoized first pages.

        A fetch still outstanding for the bucket is discarded when it lands.
        """
        self._drop(bucket)
        self._cache.delete_prefix(self._bucket_prefix(bucket))
        self._prune_lock(bucket)

    def clear_collection(self, collection_id: str) -> None:
        """Reset every bucket of *collection_id*, including ones not in ``categories``."""
        for bucket in [b for b in self._known_buckets() if b.collection_id == collection_id]:
            self._drop(bucket)
            self._prune_lock(bucket)
        removed = self._cache.delete_prefix(self._collection_prefix(collection_id))
        logger.info("Cleared collection %s (%d cached pages)", collection_id, removed)

    def clear_cache(self) -> None:
        """Reset every bucket and drop all first pages memoized by this paginator."""
        for bucket in self._known_buckets():
            self._drop(bucket)
            self._prune_lock(bucket)
        removed = self._cache.delete_prefix(f"{_key_part(self._namespace)}:")
        logger.info("Cleared all pagination state (%d cached pages)", removed)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _load_first_page(
        self,
        bucket: BucketKey,
        bound: dict[str, Any],
        key: str,
        generation: int,
    ) -> list[Any]:
        page = await self._fetch(bucket, bound, 1)
        if self._generations.get(bucket, 0) != generation:
            logger.warning("Discarding first page of bucket %s: bucket was reset", bucket)
            raise StaleResponseError(f"Bucket {bucket} was reset while page 1 was loading")

        items = self._apply_transform(bucket, page.items)
        total, has_more = _reconcile(page, items, len(items), self._page_size)
        state = PaginationState(
            bucket=bucket,
            page_size=self._page_size,
            filter=bound,
            current_page=1,
            has_more=has_more,
            total=total,
            items=list(items),
        )
        self._states[bucket] = state
        self._cache.set(
            key,
            {"items": list(page.items), "total": total, "has_more": has_more, "filter": dict(bound)},
            ttl=self._ttl,
        )
        logger.info(
            "Initialized bucket %s: %d items, total=%d, has_more=%s",
            bucket, len(items), total, has_more,
        )
        return list(items)

    async def _fetch(self, bucket: BucketKey, bound: Mapping[str, Any], page: int) -> Page:
        try:
            result = await self._fetcher.fetch_page(bucket, dict(bound), page, self._page_size)
            return result if isinstance(result, Page) else Page.model_validate(result)
        except BrowsekitError:
            raise
        except Exception as exc:
            logger.debug("Fetch of page %d of bucket %s failed: %s", page, bucket, exc)
            raise RemoteFetchError(str(exc) or type(exc).__name__) from exc

    def _restore(self, bucket: BucketKey, cached: Mapping[str, Any]) -> PaginationState:
        self._bump(bucket)
        state = PaginationState(
            bucket=bucket,
            page_size=self._page_size,
            filter=dict(cached["filter"]),
            current_page=1,
            has_more=cached["has_more"],
            total=cached["total"],
            items=self._apply_transform(bucket, cached["items"]),
        )
        self._states[bucket] = state
        return state

    def _apply_transform(self, bucket: BucketKey, items: list[Any]) -> list[Any]:
        if self._transform is None:
            return list(items)
        return list(self._transform(bucket, list(items)))

    def _result(self, state: PaginationState, items: list[Any]) -> PageResult:
        return PageResult(
            items=items,
            has_more=state.has_more,
            loaded=len(state.items),
            total=state.total,
            current_page=state.current_page,
        )

    def _bump(self, bucket: BucketKey) -> int:
        generation = next(self._generation_counter)
        self._generations[bucket] = generation
        return generation

    def _drop(self, bucket: BucketKey) -> None:
        # Generations are never reused, so forgetting the bucket's entry
        # is enough to invalidate an outstanding fetch.
        self._generations.pop(bucket, None)
        self._states.pop(bucket, None)
        self._pending.pop(bucket, None)

    def _prune_lock(self, bucket: BucketKey) -> None:
        lock = self._locks.get(bucket)
        if lock is not None and not lock.locked():
            del self._locks[bucket]

    def _known_buckets(self) -> list[BucketKey]:
        return list({*self._states, *self._generations, *self._pending, *self._locks})

    def _collection_buckets(self, collection_id: str) -> list[BucketKey]:
        if not self._categories:
            return [BucketKey(collection_id, ALL_CATEGORIES)]
        return [BucketKey(collection_id, category) for category in self._categories]

    def _collection_prefix(self, collection_id: str) -> str:
        return f"{_key_part(self._namespace)}:{_key_part(collection_id)}:"

    def _bucket_prefix(self, bucket: BucketKey) -> str:
        return f"{self._collection_prefix(bucket.collection_id)}{_key_part(bucket.category)}:"

    def _cache_key(self, bucket: BucketKey, bound: Mapping[str, Any]) -> str:
        return f"{self._bucket_prefix(bucket)}page1:{_filter_digest(bound)}"
