"""Favorites commands -- inspect and edit the favorites registry.

Provides the ``browsekit favorites`` sub-command group.  Projects and
repositories live in the global scope; branch favorites are scoped by their
repository id (``--scope REPO_ID``).
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Optional

import typer

from browsekit.favorites import GLOBAL_SCOPE
from browsekit.output import format_response, info, print_table, success

if TYPE_CHECKING:
    from browsekit.favorites import FavoritesRegistry


favorites_app = typer.Typer(no_args_is_help=True)


@contextmanager
def _open_favorites() -> Iterator[FavoritesRegistry]:
    from browsekit.config import get_data_dir
    from browsekit.factory import create_favorites
    from browsekit.store import DiskStore

    with DiskStore(get_data_dir()) as store:
        yield create_favorites(store)


@favorites_app.command("list")
def favorites_list(
    scope: Optional[str] = typer.Option(
        None, "--scope", "-s", help="Only show favorites of this scope (e.g. a repository id)."
    ),
) -> None:
    """List favorites grouped by scope."""
    with _open_favorites() as favorites:
        registry = favorites.scopes()
    if scope is not None:
        registry = {scope: registry[scope]} if scope in registry else {}
    if not registry:
        info("No favorites.")
        return
    rows = [[s, item_id] for s, ids in sorted(registry.items()) for item_id in ids]
    print_table(["Scope", "ID"], rows, title="Favorites")


@favorites_app.command("toggle")
def favorites_toggle(
    item_id: str = typer.Argument(help="Identifier to mark or unmark."),
    scope: str = typer.Option(GLOBAL_SCOPE, "--scope", "-s", help="Scope of the favorite."),
) -> None:
    """Mark an item as favorite, or unmark it if it already is."""
    with _open_favorites() as favorites:
        state = favorites.toggle(item_id, scope)
    success(f"{'Added' if state else 'Removed'} favorite '{item_id}'.")


@favorites_app.command("export")
def favorites_export() -> None:
    """Write the registry to stdout as JSON."""
    with _open_favorites() as favorites:
        data = favorites.scopes()
    format_response(data)


@favorites_app.command("clear")
def favorites_clear(
    ctx: typer.Context,
    scope: Optional[str] = typer.Option(None, "--scope", "-s", help="Only clear this scope."),
) -> None:
    """Remove all favorites, or only those of one scope.

    Asks for confirmation unless ``--force`` is active.
    """
    force = ctx.obj.get("force", False) if ctx.obj else False
    label = f"favorites of scope '{scope}'" if scope else "all favorites"
    if not force and not typer.confirm(f"Clear {label}?"):
        info("Cancelled.")
        raise typer.Exit()

    with _open_favorites() as favorites:
        favorites.clear(scope)
    success(f"Cleared {label}.")
