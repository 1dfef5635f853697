"""In-memory key-value cache with per-entry time-to-live.

Entries are stamped with their creation time and TTL when written and are
checked lazily on read: an expired entry is deleted the moment someone asks
for it, so stale data is never observable.  :meth:`TTLCache.clean_expired`
is the proactive counterpart, meant to be run periodically by
:class:`~browsekit.cache.sweeper.CacheSweeper` so that entries nobody reads
again still get released.

The cache is domain-agnostic.  Callers encode domain and scope in the key
(``"workitems:<project>:Bug:page1:<filter>"``) and use
:meth:`TTLCache.get_all_keys` or :meth:`TTLCache.delete_prefix` for bulk
invalidation.

See Also:
    :class:`~browsekit.models.CacheConfig` -- per-domain TTL defaults.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class CacheEntry:
    """A cached value with its creation time and lifetime, both in seconds."""

    key: str
    payload: Any
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        """An entry is valid while ``now - created_at <= ttl``."""
        return (now - self.created_at) > self.ttl


class TTLCache:
    """Expiring in-memory key-value store.

    None of the methods raise; a missing or expired key is reported as
    ``None`` by :meth:`get`.

    Args:
        default_ttl: Lifetime in seconds used when :meth:`set` is called
            without an explicit ``ttl``.  Defaults to 30 minutes.
        clock: Zero-argument callable returning the current time in seconds.
            Defaults to :func:`time.monotonic`; tests inject a fake clock.

    Example::

        cache = TTLCache(default_ttl=600)
        cache.set("projects:page1", projects)
        cache.get("projects:page1")          # -> projects, for 10 minutes
    """

    def __init__(
        self,
        default_ttl: float = 30 * 60,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._default_ttl = default_ttl
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry] = {}

    @property
    def default_ttl(self) -> float:
        """TTL in seconds applied when :meth:`set` gets no ``ttl``."""
        return self._default_ttl

    def get(self, key: str) -> Any:
        """Return the cached value for *key*, or ``None`` on a miss.

        An expired entry is deleted before ``None`` is returned.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry.payload

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store *value* under *key*, replacing any previous entry.

        Args:
            key: Cache key.
            value: Value to store; returned as-is by :meth:`get`.
            ttl: Lifetime in seconds.  ``None`` uses :attr:`default_ttl`.
        """
        self._entries[key] = CacheEntry(
            key=key,
            payload=value,
            created_at=self._clock(),
            ttl=self._default_ttl if ttl is None else ttl,
        )

    def delete(self, key: str) -> None:
        """Remove *key*.  Missing keys are ignored."""
        self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with *prefix* and return how many were removed."""
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()

    def is_expired(self, key: str) -> bool:
        """Return ``True`` if *key* is expired or not present at all."""
        entry = self._entries.get(key)
        if entry is None:
            return True
        return entry.is_expired(self._clock())

    def clean_expired(self) -> int:
        """Remove every currently expired entry.

        Unexpired entries are left untouched.

        Returns:
            The number of entries removed.
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get_all_keys(self) -> list[str]:
        """Return all keys currently held, including ones not yet swept."""
        return list(self._entries)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``size`` (entries held, expired or not),
            ``expired`` (entries a sweep would remove) and
            ``default_ttl_seconds``.
        """
        now = self._clock()
        return {
            "size": len(self._entries),
            "expired": sum(1 for entry in self._entries.values() if entry.is_expired(now)),
            "default_ttl_seconds": self._default_ttl,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and not self.is_expired(key)
