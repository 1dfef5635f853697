"""Periodic expiry sweep for :class:`~browsekit.cache.ttl_cache.TTLCache`.

Lazy expiry only releases entries that are read again.  The sweeper runs
:meth:`~browsekit.cache.ttl_cache.TTLCache.clean_expired` on a fixed
interval inside the host's event loop so memory stays bounded by the live
entries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from browsekit.cache.ttl_cache import TTLCache

logger = logging.getLogger(__name__)


class CacheSweeper:
    """Background asyncio task that sweeps a cache every *interval* seconds.

    Args:
        cache: The cache to sweep.
        interval: Seconds between sweeps (``CacheConfig.sweep_interval_seconds``).

    Example::

        async with CacheSweeper(cache, interval=300):
            await serve_forever()
    """

    def __init__(self, cache: TTLCache, interval: float = 300) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._cache = cache
        self._interval = interval
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        """Whether the sweep task is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start sweeping.  Calling it again while running is a no-op."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def sweep(self) -> int:
        """Run one sweep immediately and return the number of entries removed."""
        removed = self._cache.clean_expired()
        if removed:
            logger.debug("Swept %d expired cache entries", removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.sweep()

    async def __aenter__(self) -> CacheSweeper:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
