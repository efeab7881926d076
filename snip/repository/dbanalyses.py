"""Storage of database analyses in SQLite."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime

_COLUMNS = (
    "id, title, database_type, analysis_type, connection_config, log_file_path, "
    "output_type, result, ai_insights, status, error_message, created_at, updated_at"
)


@dataclass
class DBAnalysis:
    """A stored run of a database analysis and its outcome."""

    id: int = 0
    title: str = ""
    database_type: str = ""
    analysis_type: str = ""
    connection_config: str = ""
    log_file_path: str = ""
    output_type: str = ""
    result: str = ""
    ai_insights: str = ""
    status: str = ""
    error_message: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


class AnalysisNotFoundError(LookupError):
    """Raised when no analysis has the requested id."""


def _to_db(value: datetime) -> str:
    return value.isoformat(sep=" ", timespec="microseconds")


def _from_db(value: str | datetime) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)


def _row_to_analysis(row: tuple) -> DBAnalysis:
    (analysis_id, title, database_type, analysis_type, connection_config, log_file_path,
     output_type, result, ai_insights, status, error_message, created_at, updated_at) = row
    return DBAnalysis(
        id=analysis_id,
        title=title,
        database_type=database_type,
        analysis_type=analysis_type,
        connection_config=connection_config,
        log_file_path=log_file_path or "",
        output_type=output_type,
        result=result or "",
        ai_insights=ai_insights or "",
        status=status,
        error_message=error_message or "",
        created_at=_from_db(created_at),
        updated_at=_from_db(updated_at),
    )


class DBAnalysisRepository:
    """Reads and writes rows of the db_analyses table."""

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def close(self) -> None:
        """Close the underlying connection."""
        self._db.close()

    def create(self, analysis: DBAnalysis) -> None:
        """Insert the analysis and set its id."""
        with self._db:
            cursor = self._db.execute(
                "INSERT INTO db_analyses (title, database_type, analysis_type, "
                "connection_config, log_file_path, output_type, result, ai_insights, "
                "status, error_message, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    analysis.title,
                    analysis.database_type,
                    analysis.analysis_type,
                    analysis.connection_config,
                    analysis.log_file_path,
                    analysis.output_type,
                    analysis.result,
                    analysis.ai_insights,
                    analysis.status,
                    analysis.error_message,
                    _to_db(analysis.created_at),
                    _to_db(analysis.updated_at),
                ),
            )
        analysis.id = cursor.lastrowid

    def get_by_id(self, analysis_id: int) -> DBAnalysis:
        """Return the analysis with this id, or raise AnalysisNotFoundError."""
        row = self._db.execute(
            f"SELECT {_COLUMNS} FROM db_analyses WHERE id = ?", (analysis_id,)
        ).fetchone()
        if row is None:
            raise AnalysisNotFoundError("not found")
        return _row_to_analysis(row)

    def get_all(
        self, limit: int = 0, db_type: str = "", analysis_type: str = ""
    ) -> list[DBAnalysis]:
        """Return analyses, newest first, filtered by the non-empty arguments.

        A limit of zero or less returns every match.
        """
        query = f"SELECT {_COLUMNS} FROM db_analyses WHERE 1=1"
        args: list[object] = []
        if db_type:
            query += " AND database_type = ?"
            args.append(db_type)
        if analysis_type:
            query += " AND analysis_type = ?"
            args.append(analysis_type)
        query += " ORDER BY created_at DESC"
        if limit > 0:
            query += " LIMIT ?"
            args.append(limit)
        return [_row_to_analysis(row) for row in self._db.execute(query, args)]

    def update(self, analysis: DBAnalysis) -> None:
        """Store title, result, insights, status and error; stamp updated_at."""
        analysis.updated_at = datetime.now()
        with self._db:
            self._db.execute(
                "UPDATE db_analyses SET title = ?, result = ?, ai_insights = ?, status = ?, "
                "error_message = ?, updated_at = ? WHERE id = ?",
                (
                    analysis.title,
                    analysis.result,
                    analysis.ai_insights,
                    analysis.status,
                    analysis.error_message,
                    _to_db(analysis.updated_at),
                    analysis.id,
                ),
            )

    def delete(self, analysis_id: int) -> None:
        """Delete an analysis by id."""
        with self._db:
            self._db.execute("DELETE FROM db_analyses WHERE id = ?", (analysis_id,))

    def get_recent(self, limit: int) -> list[DBAnalysis]:
        """Return the newest analyses of any kind."""
        return self.get_all(limit, "", "")