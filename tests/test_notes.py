import json
import sqlite3
from datetime import datetime, timedelta

import pytest

from snip.repository.notes import (
    Note,
    NoteNotFoundError,
    NoteRepository,
    NoteWithTags,
    sanitize_filename,
)

SCHEMA = """
CREATE TABLE notes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE tags (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT UNIQUE NOT NULL);
CREATE TABLE notes_tags (
    note_id INTEGER NOT NULL,
    tag_id INTEGER NOT NULL,
    PRIMARY KEY (note_id, tag_id)
);
CREATE VIRTUAL TABLE notes_fts USING fts5(id UNINDEXED, title, content);
CREATE TRIGGER notes_ai AFTER INSERT ON notes BEGIN
    INSERT INTO notes_fts (id, title, content) VALUES (new.id, new.title, new.content);
END;
"""

BASE = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def db():
    conn = sqlite3.connect(":memory:")
    conn.executescript(SCHEMA)
    yield conn
    try:
        conn.close()
    except sqlite3.ProgrammingError:
        pass


@pytest.fixture
def repo(db):
    return NoteRepository(db)


def add_note(repo, title, content, offset_hours=0):
    stamp = BASE + timedelta(hours=offset_hours)
    note = Note(title=title, content=content, created_at=stamp, updated_at=stamp)
    repo.create(note)
    return note


def add_tag(db, name):
    with db:
        return db.execute("INSERT INTO tags (name) VALUES (?)", (name,)).lastrowid


def test_create_and_get_round_trip(repo):
    note = add_note(repo, "Test Note", "Test content")
    assert note.id > 0
    fetched = repo.get_by_id(note.id)
    assert isinstance(fetched, NoteWithTags)
    assert fetched.title == "Test Note"
    assert fetched.content == "Test content"
    assert fetched.tags == []
    assert fetched.created_at == BASE


def test_get_by_id_includes_tags(repo, db):
    note = add_note(repo, "Tagged", "body")
    repo.add_tag_to_note(note.id, add_tag(db, "work"))
    repo.add_tag_to_note(note.id, add_tag(db, "important"))
    assert sorted(repo.get_by_id(note.id).tags) == ["important", "work"]


def test_get_by_id_missing_raises(repo):
    with pytest.raises(NoteNotFoundError):
        repo.get_by_id(999)


def test_check_by_id(repo):
    note = add_note(repo, "Exists", "x")
    assert repo.check_by_id(note.id) is None
    with pytest.raises(NoteNotFoundError):
        repo.check_by_id(note.id + 100)


def test_get_all_orders_by_creation(repo):
    first = add_note(repo, "First Note", "a", 0)
    second = add_note(repo, "Second Note", "b", 1)
    third = add_note(repo, "Third Note", "c", 2)
    assert [n.id for n in repo.get_all(False, 0)] == [third.id, second.id, first.id]
    assert [n.id for n in repo.get_all(True, 0)] == [first.id, second.id, third.id]


def test_get_all_filters_by_tag(repo, db):
    first = add_note(repo, "First Note", "a", 0)
    add_note(repo, "Second Note", "b", 1)
    tag_id = add_tag(db, "work")
    repo.add_tag_to_note(first.id, tag_id)
    result = repo.get_all(True, tag_id)
    assert [n.id for n in result] == [first.id]
    assert result[0].tags == ["work"]


def test_update_without_title_keeps_title(repo):
    note = add_note(repo, "Original", "old")
    repo.update(note.id, "new content", "")
    fetched = repo.get_by_id(note.id)
    assert fetched.title == "Original"
    assert fetched.content == "new content"
    assert fetched.updated_at > BASE


def test_update_with_title(repo):
    note = add_note(repo, "Original", "old")
    repo.update(note.id, "new content", "Renamed")
    assert repo.get_by_id(note.id).title == "Renamed"


def test_delete(repo):
    note = add_note(repo, "Gone", "x")
    repo.delete(note.id)
    with pytest.raises(NoteNotFoundError):
        repo.check_by_id(note.id)


def test_search_uses_full_text_index(repo):
    add_note(repo, "Groceries", "buy apples and pears")
    target = add_note(repo, "Meeting", "discuss the roadmap")
    results = repo.search("roadmap")
    assert [(n.id, n.title) for n in results] == [(target.id, "Meeting")]


def test_add_tag_twice_is_ignored(repo, db):
    note = add_note(repo, "n", "c")
    tag_id = add_tag(db, "work")
    repo.add_tag_to_note(note.id, tag_id)
    repo.add_tag_to_note(note.id, tag_id)
    assert [t.name for t in repo.get_tags_by_note(note.id)] == ["work"]


def test_get_tags_by_note_sorted_and_removable(repo, db):
    note = add_note(repo, "n", "c")
    repo.add_tag_to_note(note.id, add_tag(db, "personal"))
    repo.add_tag_to_note(note.id, add_tag(db, "meeting"))
    assert [t.name for t in repo.get_tags_by_note(note.id)] == ["meeting", "personal"]
    repo.remove_tag_from_note(note.id)
    assert repo.get_tags_by_note(note.id) == []


def test_retitle_changes_title_only(repo):
    note = add_note(repo, "Before", "content")
    retitle = repo.patch
    retitle(note.id, "After")
    fetched = repo.get_by_id(note.id)
    assert fetched.title == "After"
    assert fetched.content == "content"
    assert fetched.updated_at == BASE


def test_get_recent_by_update_time(repo):
    first = add_note(repo, "First Note", "a", 0)
    second = add_note(repo, "Second Note", "b", 1)
    third = add_note(repo, "Third Note", "c", 2)
    repo.update(first.id, "touched", "")
    assert [n.id for n in repo.get_recent(2)] == [first.id, third.id]
    assert len(repo.get_recent(-1)) == 3
    assert len(repo.get_recent(100)) == 3
    assert second.id in {n.id for n in repo.get_recent(-1)}


def test_get_recent_empty(repo):
    assert repo.get_recent(5) == []


def test_export_json(repo, db, tmp_path):
    note = add_note(repo, "My Note", "body text")
    repo.add_tag_to_note(note.id, add_tag(db, "work"))
    repo.export_notes(tmp_path, None, "json")
    path = tmp_path / f"{note.id}_My_Note.json"
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["id"] == note.id
    assert document["title"] == "My Note"
    assert document["content"] == "body text"
    assert document["tags"] == ["work"]


def test_export_markdown(repo, db, tmp_path):
    note = add_note(repo, "My Note", "body text")
    repo.add_tag_to_note(note.id, add_tag(db, "work"))
    repo.export_notes(tmp_path, None, "markdown")
    text = (tmp_path / f"{note.id}_My_Note.md").read_text(encoding="utf-8")
    assert text.startswith("# My Note\n\nbody text\n\n")
    assert "**Tags:** work\n" in text
    assert "**Created:** 2024-01-01 12:00:00\n" in text
    assert text.endswith("\n---\n\n")


def test_export_since_filters(repo, tmp_path):
    add_note(repo, "Old", "a", 0)
    recent = add_note(repo, "New", "b", 5)
    repo.export_notes(tmp_path, BASE + timedelta(hours=1), "json")
    assert [p.name for p in tmp_path.iterdir()] == [f"{recent.id}_New.json"]


def test_export_invalid_format(repo, tmp_path):
    add_note(repo, "Note", "a")
    with pytest.raises(ValueError, match="invalid format: xml"):
        repo.export_notes(tmp_path, None, "xml")


def test_sanitize_filename_replaces_unsafe_chars():
    assert sanitize_filename('a/b\\c:d*e?f"g<h>i|j k') == "a_b_c_d_e_f_g_h_i_j_k"


def test_sanitize_filename_truncates():
    assert sanitize_filename("x" * 80) == "x" * 50


def test_close_closes_connection(repo):
    repo.close()
    with pytest.raises(sqlite3.ProgrammingError):
        repo.get_all(True, 0)