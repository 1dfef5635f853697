"""Durable key-value stores used to persist state across restarts.

The ranker and the favorites registry persist through the small
:class:`KeyValueStore` protocol, so hosts can plug in whatever storage they
already have.  Two implementations ship with the package:

* :class:`DiskStore` -- backed by :mod:`diskcache` in the data directory.
  Values are pickled by diskcache, so any picklable object round-trips.
* :class:`MemoryStore` -- a plain ``dict``, for tests and ephemeral hosts.

No transactional guarantees are offered or required.
"""

from __future__ import annotations

import pickle
import sqlite3
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

import diskcache

from browsekit.exceptions import StoreError

_STORE_ERRORS = (OSError, sqlite3.Error, pickle.PickleError)


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal durable store interface: ``get``, ``set`` and ``delete``.

    ``get`` returns *default* when the key is absent.  Implementations raise
    :class:`~browsekit.exceptions.StoreError` on I/O failure.
    """

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Dict-backed :class:`KeyValueStore` that lives as long as the process."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class DiskStore:
    """:class:`KeyValueStore` persisted with :class:`diskcache.Cache`.

    Entries never expire.  All diskcache, SQLite and filesystem errors are
    wrapped in :class:`~browsekit.exceptions.StoreError`.

    Args:
        directory: Root directory of the store.  A ``store/`` subdirectory
            is created inside it.

    Example::

        from browsekit.config import get_data_dir

        store = DiskStore(get_data_dir())
        store.set("browsekit.recentItems", [])
        store.close()
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory) / "store"
        try:
            self._cache: Optional[diskcache.Cache] = diskcache.Cache(str(self._directory))
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot open store at {self._directory}: {exc}") from exc

    @property
    def directory(self) -> Path:
        """Filesystem directory holding the store."""
        return self._directory

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self._require().get(key, default=default)
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot read '{key}' from {self._directory}: {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        try:
            self._require().set(key, value)
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot write '{key}' to {self._directory}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._require().delete(key)
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot delete '{key}' from {self._directory}: {exc}") from exc

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`.  Safe to call twice."""
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    def _require(self) -> diskcache.Cache:
        if self._cache is None:
            raise StoreError(f"Store at {self._directory} is closed")
        return self._cache

    def __enter__(self) -> DiskStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
