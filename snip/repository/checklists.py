"""Storage of checklists and their items in SQLite."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime

_CHECKLIST_COLUMNS = "id, task_id, project_id, title, description, created_at, updated_at"
_ITEM_COLUMNS = (
    "id, checklist_id, title, description, completed, item_order, created_at, updated_at"
)


@dataclass
class Checklist:
    """A list of items attached to a task, a project or neither."""

    id: int = 0
    task_id: int | None = None
    project_id: int | None = None
    title: str = ""
    description: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class ChecklistItem:
    """One entry of a checklist."""

    id: int = 0
    checklist_id: int = 0
    title: str = ""
    description: str = ""
    completed: bool = False
    order: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


class ChecklistNotFoundError(LookupError):
    """Raised when no checklist has the requested id."""


def _to_db(value: datetime) -> str:
    return value.isoformat(sep=" ", timespec="microseconds")


def _from_db(value: str | datetime) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)


def _row_to_checklist(row: tuple) -> Checklist:
    checklist_id, task_id, project_id, title, description, created_at, updated_at = row
    return Checklist(
        id=checklist_id,
        task_id=task_id,
        project_id=project_id,
        title=title,
        description=description,
        created_at=_from_db(created_at),
        updated_at=_from_db(updated_at),
    )


def _row_to_item(row: tuple) -> ChecklistItem:
    (item_id, checklist_id, title, description, completed, order,
     created_at, updated_at) = row
    return ChecklistItem(
        id=item_id,
        checklist_id=checklist_id,
        title=title,
        description=description,
        completed=completed == 1,
        order=order,
        created_at=_from_db(created_at),
        updated_at=_from_db(updated_at),
    )


class ChecklistRepository:
    """Reads and writes rows of the checklists table."""

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def close(self) -> None:
        """Close the underlying connection."""
        self._db.close()

    def create(self, checklist: Checklist) -> None:
        """Insert the checklist and set its id."""
        with self._db:
            cursor = self._db.execute(
                "INSERT INTO checklists (task_id, project_id, title, description, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    checklist.task_id,
                    checklist.project_id,
                    checklist.title,
                    checklist.description,
                    _to_db(checklist.created_at),
                    _to_db(checklist.updated_at),
                ),
            )
        checklist.id = cursor.lastrowid

    def get_by_id(self, checklist_id: int) -> Checklist:
        """Return the checklist with this id, or raise ChecklistNotFoundError."""
        row = self._db.execute(
            f"SELECT {_CHECKLIST_COLUMNS} FROM checklists WHERE id = ?", (checklist_id,)
        ).fetchone()
        if row is None:
            raise ChecklistNotFoundError("checklist not found")
        return _row_to_checklist(row)

    def _select(self, where: str, args: tuple) -> list[Checklist]:
        rows = self._db.execute(
            f"SELECT {_CHECKLIST_COLUMNS} FROM checklists{where} ORDER BY created_at DESC",
            args,
        )
        return [_row_to_checklist(row) for row in rows]

    def get_by_task_id(self, task_id: int) -> list[Checklist]:
        """Return a task's checklists, newest first."""
        return self._select(" WHERE task_id = ?", (task_id,))

    def get_by_project_id(self, project_id: int) -> list[Checklist]:
        """Return a project's checklists, newest first."""
        return self._select(" WHERE project_id = ?", (project_id,))

    def get_all(self) -> list[Checklist]:
        """Return every checklist, newest first."""
        return self._select("", ())

    def update(self, checklist_id: int, title: str, description: str) -> None:
        """Overwrite title and description and touch updated_at."""
        with self._db:
            self._db.execute(
                "UPDATE checklists SET title = ?, description = ?, updated_at = ? WHERE id = ?",
                (title, description, _to_db(datetime.now()), checklist_id),
            )

    def delete(self, checklist_id: int) -> None:
        """Delete a checklist by id."""
        with self._db:
            self._db.execute("DELETE FROM checklists WHERE id = ?", (checklist_id,))


class ChecklistItemRepository:
    """Reads and writes rows of the checklist_items table."""

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def close(self) -> None:
        """Close the underlying connection."""
        self._db.close()

    def create(self, item: ChecklistItem) -> None:
        """Insert the item and set its id."""
        with self._db:
            cursor = self._db.execute(
                "INSERT INTO checklist_items (checklist_id, title, description, completed, "
                "item_order, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    item.checklist_id,
                    item.title,
                    item.description,
                    int(item.completed),
                    item.order,
                    _to_db(item.created_at),
                    _to_db(item.updated_at),
                ),
            )
        item.id = cursor.lastrowid

    def get_by_checklist_id(self, checklist_id: int) -> list[ChecklistItem]:
        """Return a checklist's items by their order, then by creation time."""
        rows = self._db.execute(
            f"SELECT {_ITEM_COLUMNS} FROM checklist_items WHERE checklist_id = ? "
            "ORDER BY item_order ASC, created_at ASC",
            (checklist_id,),
        )
        return [_row_to_item(row) for row in rows]

    def update(self, item_id: int, title: str, description: str, completed: bool) -> None:
        """Overwrite title, description and completion and touch updated_at."""
        with self._db:
            self._db.execute(
                "UPDATE checklist_items SET title = ?, description = ?, completed = ?, "
                "updated_at = ? WHERE id = ?",
                (title, description, int(completed), _to_db(datetime.now()), item_id),
            )

    def toggle_complete(self, item_id: int) -> None:
        """Flip the completion of an item."""
        with self._db:
            self._db.execute(
                "UPDATE checklist_items SET completed = CASE WHEN completed = 1 THEN 0 "
                "ELSE 1 END, updated_at = ? WHERE id = ?",
                (_to_db(datetime.now()), item_id),
            )

    def delete(self, item_id: int) -> None:
        """Delete an item by id."""
        with self._db:
            self._db.execute("DELETE FROM checklist_items WHERE id = ?", (item_id,))