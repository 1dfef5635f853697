"""Recent commands -- inspect and maintain the recently-used registry.

Provides the ``browsekit recent`` sub-command group.  Every command opens
the durable store in the data directory, builds a
:class:`~browsekit.ranker.RecencyRanker` from the effective configuration
(so scores reflect the current time), and closes the store on exit.
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

import typer

from browsekit.exit_codes import EXIT_INVALID_USAGE
from browsekit.models import RecentEntry, RecentItemType
from browsekit.output import error, format_response, info, print_table, success

if TYPE_CHECKING:
    from browsekit.ranker import RecencyRanker


recent_app = typer.Typer(no_args_is_help=True)


@contextmanager
def _open_ranker() -> Iterator[RecencyRanker]:
    from browsekit.config import get_data_dir
    from browsekit.factory import create_ranker
    from browsekit.store import DiskStore

    with DiskStore(get_data_dir()) as store:
        yield create_ranker(store)


def _format_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _rows(entries: list[RecentEntry]) -> list[list[str]]:
    return [
        [
            e.item_type.value,
            e.item_id,
            str(e.use_count),
            _format_time(e.last_used_at),
            f"{e.score:.3f}",
        ]
        for e in entries
    ]


@recent_app.command("list")
def recent_list(
    item_type: Optional[RecentItemType] = typer.Option(
        None, "--type", "-t", help="Only show entries of this type."
    ),
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Maximum number of entries."),
) -> None:
    """List recently used entries, best score first.

    Example::

        browsekit recent list --type code-repo --limit 5
    """
    with _open_ranker() as ranker:
        if item_type is None:
            entries = ranker.get_all_recent(limit)
        else:
            entries = ranker.get_recent(item_type, limit)
    if not entries:
        info("No recent items.")
        return
    print_table(["Type", "ID", "Uses", "Last used (UTC)", "Score"], _rows(entries), title="Recent items")


@recent_app.command("stats")
def recent_stats() -> None:
    """Show per-type counts and the top entry of each type."""
    with _open_ranker() as ranker:
        stats = ranker.statistics()
    format_response(stats)


@recent_app.command("remove")
def recent_remove(
    item_id: str = typer.Argument(help="Identifier of the entry to remove."),
    item_type: RecentItemType = typer.Option(..., "--type", "-t", help="Type of the entry."),
) -> None:
    """Remove a single entry from the registry."""
    with _open_ranker() as ranker:
        removed = ranker.remove_item(item_id, item_type)
    if not removed:
        info(f"No {item_type.value} entry '{item_id}'.")
        raise typer.Exit(code=1)
    success(f"Removed {item_type.value} '{item_id}'.")


@recent_app.command("clear")
def recent_clear(
    ctx: typer.Context,
    item_type: Optional[RecentItemType] = typer.Option(
        None, "--type", "-t", help="Only clear entries of this type."
    ),
) -> None:
    """Clear the registry, or only one type of it.

    Asks for confirmation unless ``--force`` is active.
    """
    force = ctx.obj.get("force", False) if ctx.obj else False
    scope = f"all {item_type.value} entries" if item_type else "all recent items"
    if not force and not typer.confirm(f"Clear {scope}?"):
        info("Cancelled.")
        raise typer.Exit()

    with _open_ranker() as ranker:
        if item_type is None:
            ranker.clear()
        else:
            ranker.clear_by_type(item_type)
    success(f"Cleared {scope}.")


@recent_app.command("export")
def recent_export() -> None:
    """Write the registry to stdout as JSON (for debugging or migration)."""
    with _open_ranker() as ranker:
        data = ranker.export_items()
    format_response(data)


@recent_app.command("import")
def recent_import(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file from 'recent export'."),
) -> None:
    """Replace the registry with the entries of an exported JSON file."""
    try:
        rows = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        error(f"{path} is not valid JSON: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    if not isinstance(rows, list):
        error(f"{path} must contain a JSON array of entries")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    with _open_ranker() as ranker:
        kept = ranker.import_items(rows)
    success(f"Imported {kept} of {len(rows)} entries.")
