"""Default work-item categories.

Work items are paginated per category, one bucket per category of a
project.  The category list is handed to
:class:`~browsekit.paginator.CategoryPaginator` at construction time; this
module provides the default table together with display helpers.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Category:
    """A work-item category: server id, display name and icon."""

    id: str
    name: str
    icon: str


DEFAULT_ICON = "\U0001f4cb"

WORKITEM_CATEGORIES: tuple[Category, ...] = (
    Category("Req", "Requirement", "\U0001f4a1"),
    Category("Bug", "Bug", "\U0001f41b"),
    Category("Task", "Task", "✓"),
    Category("Risk", "Risk", "⚠️"),
    Category("SubTask", "Sub-task", "▫️"),
)

_BY_ID = {c.id: c for c in WORKITEM_CATEGORIES}
_BY_NAME = {c.name.lower(): c for c in WORKITEM_CATEGORIES}


def all_category_ids() -> list[str]:
    """Return the ids of the default categories in display order."""
    return [c.id for c in WORKITEM_CATEGORIES]


def category_name(category_id: str) -> str:
    """Return the display name for *category_id*, or the id itself if unknown."""
    category = _BY_ID.get(category_id)
    return category.name if category else category_id


def category_id(name: str) -> str:
    """Map a display name (case-insensitive) or id back to the category id."""
    if name in _BY_ID:
        return name
    category = _BY_NAME.get(name.lower())
    return category.id if category else name


def category_icon(key: str) -> str:
    """Return the icon for a category id or display name."""
    category = _BY_ID.get(key) or _BY_NAME.get(key.lower())
    return category.icon if category else DEFAULT_ICON
