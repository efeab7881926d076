"""Storage of notes and their tags in SQLite."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from snip.models import Tag

_SELECT_WITH_TAGS = (
    "SELECT n.id, n.title, n.content, n.created_at, n.updated_at, "
    "GROUP_CONCAT(t.name) AS tags "
    "FROM notes n "
    "LEFT JOIN notes_tags nt ON n.id = nt.note_id "
    "LEFT JOIN tags t ON nt.tag_id = t.id"
)

_UNSAFE_FILENAME_CHARS = '/\\:*?"<>| '
_MAX_FILENAME_LENGTH = 50
_DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class Note:
    """A titled piece of text."""

    id: int = 0
    title: str = ""
    content: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class NoteWithTags:
    """A note together with the names of its tags."""

    id: int = 0
    title: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


class NoteNotFoundError(LookupError):
    """Raised when no note has the requested id."""


def _to_db(value: datetime) -> str:
    return value.isoformat(sep=" ", timespec="microseconds")


def _from_db(value: str | datetime) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)


def _split_tags(value: str | None) -> list[str]:
    return value.split(",") if value else []


def _row_to_note(row: tuple) -> NoteWithTags:
    note_id, title, content, created_at, updated_at, tags = row
    return NoteWithTags(
        id=note_id,
        title=title,
        content=content,
        tags=_split_tags(tags),
        created_at=_from_db(created_at),
        updated_at=_from_db(updated_at),
    )


def sanitize_filename(title: str) -> str:
    """Make a title safe to use as part of a file name."""
    cleaned = "".join("_" if ch in _UNSAFE_FILENAME_CHARS else ch for ch in title)
    return cleaned[:_MAX_FILENAME_LENGTH].strip()


def _write_json(note: NoteWithTags, export_dir: Path) -> None:
    path = export_dir / f"{note.id}_{sanitize_filename(note.title)}.json"
    document = {
        "id": note.id,
        "title": note.title,
        "content": note.content,
        "tags": note.tags or None,
        "created_at": note.created_at.isoformat(),
        "updated_at": note.updated_at.isoformat(),
    }
    path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")


def _write_markdown(note: NoteWithTags, export_dir: Path) -> None:
    path = export_dir / f"{note.id}_{sanitize_filename(note.title)}.md"
    parts = [f"# {note.title}\n\n", f"{note.content}\n\n"]
    if note.tags:
        parts.append(f"**Tags:** {', '.join(note.tags)}\n")
    parts.append(f"**Created:** {note.created_at.strftime(_DISPLAY_FORMAT)}\n")
    parts.append(f"**Updated:** {note.updated_at.strftime(_DISPLAY_FORMAT)}\n")
    parts.append("\n---\n\n")
    path.write_text("".join(parts), encoding="utf-8")


_WRITERS = {"json": _write_json, "markdown": _write_markdown}


class NoteRepository:
    """Reads and writes notes, their tag links and full-text index."""

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def close(self) -> None:
        """Close the underlying connection."""
        self._db.close()

    def create(self, note: Note) -> None:
        """Insert the note and set its id."""
        with self._db:
            cursor = self._db.execute(
                "INSERT INTO notes (title, content, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (note.title, note.content, _to_db(note.created_at), _to_db(note.updated_at)),
            )
        note.id = cursor.lastrowid

    def get_by_id(self, note_id: int) -> NoteWithTags:
        """Return the note with its tags, or raise NoteNotFoundError."""
        row = self._db.execute(
            f"{_SELECT_WITH_TAGS} WHERE n.id = ?", (note_id,)
        ).fetchone()
        if row is None or row[0] is None:
            raise NoteNotFoundError("not found")
        return _row_to_note(row)

    def check_by_id(self, note_id: int) -> None:
        """Raise NoteNotFoundError unless a note with this id exists."""
        row = self._db.execute("SELECT id FROM notes WHERE id = ?", (note_id,)).fetchone()
        if row is None:
            raise NoteNotFoundError("not found")

    def get_all(self, is_asc: bool = False, tag_id: int = 0) -> list[NoteWithTags]:
        """Return notes ordered by creation time, optionally only those with a tag."""
        query = _SELECT_WITH_TAGS
        args: list[object] = []
        if tag_id != 0:
            query += " WHERE nt.tag_id = ?"
            args.append(tag_id)
        query += " GROUP BY n.id ORDER BY n.created_at " + ("ASC" if is_asc else "DESC")
        return [_row_to_note(row) for row in self._db.execute(query, args)]

    def update(self, note_id: int, content: str, title: str = "") -> None:
        """Replace the content, and the title when one is given."""
        query = "UPDATE notes SET content = ?, updated_at = ?"
        args: list[object] = [content, _to_db(datetime.now())]
        if title:
            query += ", title = ?"
            args.append(title)
        query += " WHERE id = ?"
        args.append(note_id)
        with self._db:
            self._db.execute(query, args)

    def delete(self, note_id: int) -> None:
        """Delete a note by id."""
        with self._db:
            self._db.execute("DELETE FROM notes WHERE id = ?", (note_id,))

    def search(self, term: str) -> list[Note]:
        """Return notes whose full-text index matches the term."""
        rows = self._db.execute(
            "SELECT id, title, content FROM notes_fts WHERE notes_fts MATCH ?", (term,)
        )
        return [Note(id=note_id, title=title, content=content) for note_id, title, content in rows]

    def add_tag_to_note(self, note_id: int, tag_id: int) -> None:
        """Link a tag to a note; an existing link is left as it is."""
        with self._db:
            self._db.execute(
                "INSERT OR IGNORE INTO notes_tags (note_id, tag_id) VALUES (?, ?)",
                (note_id, tag_id),
            )

    def remove_tag_from_note(self, note_id: int) -> None:
        """Remove every tag link of a note."""
        with self._db:
            self._db.execute("DELETE FROM notes_tags WHERE note_id = ?", (note_id,))

    def get_tags_by_note(self, note_id: int) -> list[Tag]:
        """Return the tags of a note ordered by name."""
        rows = self._db.execute(
            "SELECT t.id, t.name FROM tags t "
            "INNER JOIN notes_tags nt ON t.id = nt.tag_id "
            "WHERE nt.note_id = ? ORDER BY t.name",
            (note_id,),
        )
        return [Tag(id=tag_id, name=name) for tag_id, name in rows]

    def patch(self, note_id: int, title: str) -> None:
        """Change only the title of a note."""
        with self._db:
            self._db.execute("UPDATE notes SET title = ? WHERE id = ?", (title, note_id))

    def get_recent(self, limit: int) -> list[NoteWithTags]:
        """Return the most recently updated notes; a negative limit returns all."""
        rows = self._db.execute(
            f"{_SELECT_WITH_TAGS} GROUP BY n.id ORDER BY n.updated_at DESC LIMIT ?",
            (limit,),
        )
        return [_row_to_note(row) for row in rows]

    def export_notes(
        self, export_dir: str | Path, since: datetime | None = None, format: str = "json"
    ) -> None:
        """Write each note, optionally only those created since a time, to a file.

        The format is "json" or "markdown"; any other raises ValueError.
        """
        query = _SELECT_WITH_TAGS
        args: list[object] = []
        if since is not None:
            query += " WHERE n.created_at >= ?"
            args.append(_to_db(since))
        query += " GROUP BY n.id ORDER BY n.id"
        directory = Path(export_dir)
        for row in self._db.execute(query, args).fetchall():
            note = _row_to_note(row)
            writer = _WRITERS.get(format)
            if writer is None:
                raise ValueError(f"invalid format: {format}")
            writer(note, directory)
            print(f"✓ Note {note.id} exported successfully!")