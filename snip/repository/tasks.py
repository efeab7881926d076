"""Storage of tasks in SQLite."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from snip.models import Task

_COLUMNS = (
    "id, project_id, title, description, status, priority, due_date, created_at, updated_at"
)


class TaskNotFoundError(LookupError):
    """Raised when no task has the requested id."""


def _to_db(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(sep=" ", timespec="microseconds")


def _from_db(value: str | datetime | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _row_to_task(row: tuple) -> Task:
    (task_id, project_id, title, description, status, priority,
     due_date, created_at, updated_at) = row
    return Task(
        id=task_id,
        project_id=project_id,
        title=title,
        description=description,
        status=status,
        priority=priority,
        due_date=_from_db(due_date),
        created_at=_from_db(created_at),
        updated_at=_from_db(updated_at),
    )


class TaskRepository:
    """Reads and writes rows of the tasks table."""

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def close(self) -> None:
        """Close the underlying connection."""
        self._db.close()

    def create(self, task: Task) -> None:
        """Insert the task and set its id."""
        with self._db:
            cursor = self._db.execute(
                "INSERT INTO tasks (project_id, title, description, status, priority, "
                "due_date, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    task.project_id,
                    task.title,
                    task.description,
                    task.status,
                    task.priority,
                    _to_db(task.due_date),
                    _to_db(task.created_at),
                    _to_db(task.updated_at),
                ),
            )
        task.id = cursor.lastrowid

    def get_by_id(self, task_id: int) -> Task:
        """Return the task with this id, or raise TaskNotFoundError."""
        row = self._db.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
        ).fetchone()
        if row is None:
            raise TaskNotFoundError("task not found")
        return _row_to_task(row)

    def get_by_project_id(self, project_id: int, status: str = "") -> list[Task]:
        """Return a project's tasks, newest first, optionally filtered by status."""
        if status:
            rows = self._db.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE project_id = ? AND status = ? "
                "ORDER BY created_at DESC",
                (project_id, status),
            )
        else:
            rows = self._db.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE project_id = ? ORDER BY created_at DESC",
                (project_id,),
            )
        return [_row_to_task(row) for row in rows]

    def get_all(self, status: str = "") -> list[Task]:
        """Return all tasks, newest first, optionally filtered by status."""
        if status:
            rows = self._db.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE status = ? ORDER BY created_at DESC",
                (status,),
            )
        else:
            rows = self._db.execute(f"SELECT {_COLUMNS} FROM tasks ORDER BY created_at DESC")
        return [_row_to_task(row) for row in rows]

    def update(
        self,
        task_id: int,
        title: str,
        description: str,
        status: str,
        priority: str,
        due_date: datetime | None,
    ) -> None:
        """Overwrite the editable fields and touch updated_at."""
        with self._db:
            self._db.execute(
                "UPDATE tasks SET title = ?, description = ?, status = ?, priority = ?, "
                "due_date = ?, updated_at = ? WHERE id = ?",
                (
                    title,
                    description,
                    status,
                    priority,
                    _to_db(due_date),
                    _to_db(datetime.now()),
                    task_id,
                ),
            )

    def delete(self, task_id: int) -> None:
        """Delete a task by id."""
        with self._db:
            self._db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))

    def toggle_complete(self, task_id: int) -> None:
        """Mark a completed task pending, and any other task completed."""
        with self._db:
            self._db.execute(
                "UPDATE tasks SET status = CASE WHEN status = 'completed' "
                "THEN 'pending' ELSE 'completed' END, updated_at = ? WHERE id = ?",
                (_to_db(datetime.now()), task_id),
            )