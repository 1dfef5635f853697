"""browsekit -- client-side data layer for browsing remote projects, work items and code.

The package keeps a resource browser responsive without hammering the
remote API:

* :class:`~browsekit.cache.TTLCache` memoizes listings for a per-domain
  time-to-live, swept periodically by :class:`~browsekit.cache.CacheSweeper`.
* :class:`~browsekit.paginator.CategoryPaginator` reveals large collections
  page by page, one independent bucket per category.
* :class:`~browsekit.ranker.RecencyRanker` ranks recently used entities by
  a blend of recency and frequency and persists them in a
  :class:`~browsekit.store.KeyValueStore`.
* :class:`~browsekit.favorites.FavoritesRegistry` flags favorite entities on
  every page the paginator returns.

Network transport, authentication and rendering belong to the host; the
host supplies a :class:`~browsekit.paginator.RemoteFetcher`.

Modules:
    models: Pydantic models shared across the package.
    config: XDG-aware configuration loading and precedence.
    exceptions: Exception hierarchy with exit-code mapping.
    store: Durable key-value stores.
    categories: Default work-item categories.
    favorites: Scoped favorite ids and the page transform that flags them.
    factory: Builds cache, sweeper, paginators and ranker from configuration.
    app: Typer CLI for inspecting persisted state.
"""

__version__ = "0.1.0"
