"""Time-boxed in-memory caching for browsekit.

This package provides :class:`TTLCache`, an expiring key-value store used
to memoize first pages and other slowly-changing listings, and
:class:`CacheSweeper`, which releases expired entries on a timer.

TTLs are chosen per domain by the caller; see
:meth:`~browsekit.models.CacheConfig.ttl_for`.
"""

from browsekit.cache.sweeper import CacheSweeper
from browsekit.cache.ttl_cache import CacheEntry, TTLCache

__all__ = ["CacheEntry", "CacheSweeper", "TTLCache"]
