"""Favorite entities, persisted in a :class:`~browsekit.store.KeyValueStore`.

Favorites are plain id sets grouped by *scope*.  Projects and repositories
use the global scope; branches are only unique inside their repository, so
they are scoped by repository id.  The registry is stored as one mapping
``{scope: [ids]}`` under a single key.

Items are flagged at read time, not stored with the flag:
:meth:`FavoritesRegistry.transform` returns a
:data:`~browsekit.paginator.PageTransform` that the paginator applies to
every fetched page and to every first page it restores from cache, so a
toggle shows up the next time a bucket is initialized.

Like the ranker, the registry only affects presentation, so store failures
are logged and the registry keeps working in memory.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

from browsekit.exceptions import StoreError
from browsekit.models import BucketKey
from browsekit.store import KeyValueStore

if TYPE_CHECKING:
    from browsekit.paginator import PageTransform

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "*"
FAVORITE_FLAG = "is_favorite"


class FavoritesRegistry:
    """Per-scope sets of favorite ids.

    Args:
        store: Durable store holding the registry under *storage_key*.
        storage_key: Store key of the registry.

    Example::

        favorites = FavoritesRegistry(DiskStore(get_data_dir()))
        favorites.toggle("repo-7")                       # -> True
        favorites.toggle("main", scope="repo-7")         # branch favorite
        paginator = CategoryPaginator(
            fetcher, cache, transform=favorites.transform(per_collection=True)
        )
    """

    def __init__(self, store: KeyValueStore, storage_key: str = "browsekit.favorites") -> None:
        self._store = store
        self._storage_key = storage_key
        self._scopes: dict[str, list[str]] = {}
        self._load()

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def toggle(self, item_id: str, scope: str = GLOBAL_SCOPE) -> bool:
        """Flip the favorite state of *item_id* and return the new state."""
        ids = self._scopes.setdefault(scope, [])
        if item_id in ids:
            ids.remove(item_id)
            if not ids:
                del self._scopes[scope]
            state = False
        else:
            ids.append(item_id)
            state = True
        self._save()
        logger.debug("Favorite %s/%s -> %s", scope, item_id, state)
        return state

    def prune(self, existing_ids: Iterable[str], scope: str = GLOBAL_SCOPE) -> int:
        """Drop favorites of *scope* that are not in *existing_ids*.

        Used after a full listing shows that favorited entities were deleted
        remotely.

        Returns:
            The number of favorites removed.
        """
        current = self._scopes.get(scope)
        if not current:
            return 0
        keep = set(existing_ids)
        kept = [item_id for item_id in current if item_id in keep]
        removed = len(current) - len(kept)
        if removed:
            if kept:
                self._scopes[scope] = kept
            else:
                del self._scopes[scope]
            self._save()
        return removed

    def clear(self, scope: Optional[str] = None) -> None:
        """Remove all favorites, or only those of *scope*."""
        if scope is None:
            self._scopes = {}
        else:
            self._scopes.pop(scope, None)
        self._save()

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def is_favorite(self, item_id: str, scope: str = GLOBAL_SCOPE) -> bool:
        return item_id in self._scopes.get(scope, ())

    def get_favorites(self, scope: str = GLOBAL_SCOPE) -> list[str]:
        """Return the favorite ids of *scope* in the order they were added."""
        return list(self._scopes.get(scope, ()))

    def scopes(self) -> dict[str, list[str]]:
        """Return a copy of the whole registry."""
        return {scope: list(ids) for scope, ids in self._scopes.items()}

    def apply(
        self,
        items: Iterable[Any],
        scope: str = GLOBAL_SCOPE,
        id_field: str = "id",
        favorites_first: bool = False,
    ) -> list[Any]:
        """Return copies of *items* with :data:`FAVORITE_FLAG` set.

        Mapping items are copied into new dicts carrying the flag; other
        items are passed through unchanged.  With *favorites_first* the
        flagged items are moved to the front, otherwise keeping their order.
        """
        flagged = [self._flag(item, scope, id_field) for item in items]
        if favorites_first:
            flagged.sort(key=lambda item: not _is_flagged(item))
        return flagged

    def transform(
        self,
        id_field: str = "id",
        per_collection: bool = False,
        favorites_first: bool = False,
    ) -> PageTransform:
        """Build a paginator ``transform`` that flags favorites on every page.

        Args:
            id_field: Key of the item id inside each item mapping.
            per_collection: Use the bucket's ``collection_id`` as the scope
                (branches of a repository) instead of the global scope.
            favorites_first: Move favorites to the front of each page.
        """

        def _transform(bucket: BucketKey, items: list[Any]) -> list[Any]:
            scope = bucket.collection_id if per_collection else GLOBAL_SCOPE
            return self.apply(items, scope, id_field, favorites_first)

        return _transform

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._scopes.values())

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _flag(self, item: Any, scope: str, id_field: str) -> Any:
        if not isinstance(item, Mapping):
            return item
        item_id = item.get(id_field)
        favorite = item_id is not None and self.is_favorite(str(item_id), scope)
        return {**item, FAVORITE_FLAG: favorite}

    def _load(self) -> None:
        try:
            saved = self._store.get(self._storage_key, {})
        except StoreError as exc:
            logger.warning("Could not load favorites, starting empty: %s", exc)
            saved = {}
        if not isinstance(saved, Mapping):
            logger.warning("Ignoring malformed favorites registry of type %s", type(saved).__name__)
            saved = {}
        self._scopes = {
            str(scope): [str(item_id) for item_id in ids]
            for scope, ids in saved.items()
            if isinstance(ids, list) and ids
        }

    def _save(self) -> None:
        try:
            self._store.set(self._storage_key, self.scopes())
        except StoreError as exc:
            logger.warning("Could not persist favorites, keeping them in memory: %s", exc)


def _is_flagged(item: Any) -> bool:
    return isinstance(item, Mapping) and bool(item.get(FAVORITE_FLAG))
