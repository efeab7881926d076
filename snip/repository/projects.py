"""Storage of projects in SQLite."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from snip.models import Project

_COLUMNS = "id, name, description, status, created_at, updated_at"


class ProjectNotFoundError(LookupError):
    """Raised when no project has the requested id."""


def _to_db(value: datetime) -> str:
    return value.isoformat(sep=" ", timespec="microseconds")


def _from_db(value: str | datetime) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)


def _row_to_project(row: tuple) -> Project:
    project_id, name, description, status, created_at, updated_at = row
    return Project(
        id=project_id,
        name=name,
        description=description,
        status=status,
        created_at=_from_db(created_at),
        updated_at=_from_db(updated_at),
    )


class ProjectRepository:
    """Reads and writes rows of the projects table."""

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def close(self) -> None:
        """Close the underlying connection."""
        self._db.close()

    def create(self, project: Project) -> None:
        """Insert the project and set its id."""
        with self._db:
            cursor = self._db.execute(
                "INSERT INTO projects (name, description, status, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    project.name,
                    project.description,
                    project.status,
                    _to_db(project.created_at),
                    _to_db(project.updated_at),
                ),
            )
        project.id = cursor.lastrowid

    def get_by_id(self, project_id: int) -> Project:
        """Return the project with this id, or raise ProjectNotFoundError."""
        row = self._db.execute(
            f"SELECT {_COLUMNS} FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        if row is None:
            raise ProjectNotFoundError("project not found")
        return _row_to_project(row)

    def get_all(self, status: str = "") -> list[Project]:
        """Return projects, newest first, optionally only those with a status."""
        if status:
            rows = self._db.execute(
                f"SELECT {_COLUMNS} FROM projects WHERE status = ? ORDER BY created_at DESC",
                (status,),
            )
        else:
            rows = self._db.execute(
                f"SELECT {_COLUMNS} FROM projects ORDER BY created_at DESC"
            )
        return [_row_to_project(row) for row in rows]

    def update(self, project_id: int, name: str, description: str, status: str) -> None:
        """Overwrite name, description and status, and touch updated_at."""
        with self._db:
            self._db.execute(
                "UPDATE projects SET name = ?, description = ?, status = ?, updated_at = ? "
                "WHERE id = ?",
                (name, description, status, _to_db(datetime.now()), project_id),
            )

    def delete(self, project_id: int) -> None:
        """Delete a project by id."""
        with self._db:
            self._db.execute("DELETE FROM projects WHERE id = ?", (project_id,))