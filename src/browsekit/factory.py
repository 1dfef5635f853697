"""Build the data-layer components from the effective configuration.

Hosts should construct the cache, sweeper, paginators and ranker through
these helpers so that ``cache.ttl_overrides``, ``cache.sweep_interval_seconds``
and ``pagination.page_size`` take effect.  Every helper accepts an explicit
:class:`~browsekit.models.GlobalConfig`; when omitted, the configuration is
resolved with :func:`~browsekit.config.resolve_config`.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from browsekit.cache import CacheSweeper, TTLCache
from browsekit.categories import all_category_ids
from browsekit.favorites import FavoritesRegistry
from browsekit.models import GlobalConfig
from browsekit.paginator import CategoryPaginator, PageTransform, RemoteFetcher
from browsekit.ranker import RecencyRanker
from browsekit.store import KeyValueStore

logger = logging.getLogger(__name__)

#: Namespace whose paginators are split into work-item categories by default.
WORKITEMS_DOMAIN = "workitems"


def _effective(config: Optional[GlobalConfig]) -> GlobalConfig:
    if config is not None:
        return config
    from browsekit.config import resolve_config

    return resolve_config()


def default_categories(domain: str) -> tuple[str, ...]:
    """Return the categories a paginator of *domain* is split into.

    Work items are bucketed by their built-in categories; every other
    domain is paginated as a single uncategorized list.
    """
    if domain == WORKITEMS_DOMAIN:
        return tuple(all_category_ids())
    return ()


def create_cache(
    config: Optional[GlobalConfig] = None,
    clock: Optional[Callable[[], float]] = None,
) -> TTLCache:
    cfg = _effective(config)
    return TTLCache(cfg.cache.default_ttl_seconds, clock=clock)


def create_sweeper(cache: TTLCache, config: Optional[GlobalConfig] = None) -> CacheSweeper:
    cfg = _effective(config)
    return CacheSweeper(cache, interval=cfg.cache.sweep_interval_seconds)


def create_paginator(
    fetcher: RemoteFetcher,
    cache: TTLCache,
    domain: str,
    config: Optional[GlobalConfig] = None,
    categories: Optional[Sequence[str]] = None,
    transform: Optional[PageTransform] = None,
) -> CategoryPaginator:
    """Build a :class:`CategoryPaginator` for one domain namespace.

    Args:
        fetcher: Host-supplied remote fetcher.
        cache: Shared cache; first pages are memoized under *domain*.
        domain: Cache namespace, also used to look up the first-page TTL
            in ``cache.ttl_overrides``.
        config: Effective configuration, resolved when omitted.
        categories: Category ids; defaults to :func:`default_categories`.
        transform: Optional page transform, e.g.
            :meth:`FavoritesRegistry.transform`.
    """
    cfg = _effective(config)
    if categories is None:
        categories = default_categories(domain)
    ttl = cfg.cache.ttl_for(domain)
    logger.debug(
        "Paginator for %s: page_size=%d ttl=%ss categories=%s",
        domain,
        cfg.pagination.page_size,
        ttl,
        list(categories),
    )
    return CategoryPaginator(
        fetcher,
        cache,
        categories=categories,
        page_size=cfg.pagination.page_size,
        first_page_ttl=ttl,
        namespace=domain,
        transform=transform,
    )


def create_ranker(
    store: KeyValueStore,
    config: Optional[GlobalConfig] = None,
    clock: Optional[Callable[[], float]] = None,
) -> RecencyRanker:
    return RecencyRanker(store, _effective(config).ranker, clock=clock)


def create_favorites(store: KeyValueStore) -> FavoritesRegistry:
    return FavoritesRegistry(store)
