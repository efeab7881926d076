"""Storage of tags in SQLite."""

from __future__ import annotations

import sqlite3

from snip.models import Tag, new_tag


class TagNotFoundError(LookupError):
    """Raised when no tag matches the request."""


class TagRepository:
    """Reads and writes rows of the tags table."""

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def close(self) -> None:
        """Close the underlying connection."""
        self._db.close()

    def create(self, tag: Tag) -> None:
        """Insert the tag and set its id."""
        with self._db:
            cursor = self._db.execute("INSERT INTO tags (name) VALUES (?)", (tag.name,))
        tag.id = cursor.lastrowid

    def get_by_name(self, name: str) -> Tag:
        """Return the tag with this name, or raise TagNotFoundError."""
        row = self._db.execute(
            "SELECT id, name FROM tags WHERE name = ?", (name,)
        ).fetchone()
        if row is None:
            raise TagNotFoundError("tag not found")
        return Tag(id=row[0], name=row[1])

    def patch(self, tag_id: int, name: str) -> None:
        """Rename a tag."""
        with self._db:
            self._db.execute("UPDATE tags SET name = ? WHERE id = ?", (name, tag_id))

    def get_all(self) -> list[Tag]:
        """Return every tag ordered by name."""
        rows = self._db.execute("SELECT id, name FROM tags ORDER BY name")
        return [Tag(id=tag_id, name=name) for tag_id, name in rows]

    def delete(self, tag_id: int) -> None:
        """Delete a tag by id."""
        with self._db:
            self._db.execute("DELETE FROM tags WHERE id = ?", (tag_id,))

    def get_or_create(self, name: str) -> Tag:
        """Return the tag with this name, creating it when missing."""
        try:
            return self.get_by_name(name)
        except TagNotFoundError:
            tag = new_tag(name)
            self.create(tag)
            return tag