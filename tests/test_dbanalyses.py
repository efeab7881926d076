import sqlite3
from datetime import datetime

import pytest

from snip.repository.dbanalyses import (
    AnalysisNotFoundError,
    DBAnalysis,
    DBAnalysisRepository,
)


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    connection.execute(
        "CREATE TABLE db_analyses (id INTEGER PRIMARY KEY AUTOINCREMENT, title TEXT, "
        "database_type TEXT, analysis_type TEXT, connection_config TEXT, log_file_path TEXT, "
        "output_type TEXT, result TEXT, ai_insights TEXT, status TEXT, error_message TEXT, "
        "created_at TEXT, updated_at TEXT)"
    )
    yield connection
    connection.close()


@pytest.fixture
def repo(conn):
    return DBAnalysisRepository(conn)


def _analysis(title, db_type, kind, stamp):
    return DBAnalysis(
        title=title, database_type=db_type, analysis_type=kind,
        connection_config="{}", output_type="markdown", status="pending",
        created_at=stamp, updated_at=stamp,
    )


def test_create_and_get_round_trip(repo):
    analysis = _analysis("AWR", "oracle", "awr", datetime(2024, 1, 1))
    analysis.log_file_path = "/tmp/listener.log"
    analysis.result = "ok"
    repo.create(analysis)
    assert analysis.id > 0
    assert repo.get_by_id(analysis.id) == analysis


def test_missing_analysis_raises(repo):
    with pytest.raises(AnalysisNotFoundError, match="not found"):
        repo.get_by_id(99)


def test_null_columns_become_empty_strings(conn, repo):
    conn.execute(
        "INSERT INTO db_analyses (title, database_type, analysis_type, connection_config, "
        "output_type, status, created_at, updated_at) VALUES "
        "('t', 'postgresql', 'locks', '{}', 'text', 'done', "
        "'2024-01-01 00:00:00', '2024-01-01 00:00:00')"
    )
    stored = repo.get_all()[0]
    assert (stored.log_file_path, stored.result, stored.ai_insights, stored.error_message) == (
        "", "", "", ""
    )
    assert stored.database_type == "postgresql"


def test_get_all_filters_and_orders(repo):
    first = _analysis("a", "oracle", "awr", datetime(2023, 1, 1))
    second = _analysis("b", "oracle", "ash", datetime(2023, 2, 1))
    third = _analysis("c", "postgresql", "locks", datetime(2023, 3, 1))
    for item in (first, second, third):
        repo.create(item)
    assert [a.id for a in repo.get_all(0, "", "")] == [third.id, second.id, first.id]
    assert [a.id for a in repo.get_all(0, "oracle", "")] == [second.id, first.id]
    assert repo.get_all(0, "oracle", "awr") == [first]
    assert repo.get_all(0, "sqlserver", "") == []


def test_limit_and_get_recent(repo):
    stamps = [datetime(2023, month, 1) for month in (1, 2, 3)]
    created = [_analysis(str(i), "oracle", "awr", s) for i, s in enumerate(stamps)]
    for item in created:
        repo.create(item)
    assert [a.id for a in repo.get_all(2, "", "")] == [created[2].id, created[1].id]
    assert repo.get_recent(1) == [created[2]]
    assert len(repo.get_recent(0)) == 3


def test_update_persists_and_stamps(repo):
    stamp = datetime(2020, 1, 1)
    analysis = _analysis("a", "oracle", "awr", stamp)
    repo.create(analysis)
    analysis.title = "renamed"
    analysis.result = "report"
    analysis.ai_insights = "insight"
    analysis.status = "failed"
    analysis.error_message = "boom"
    repo.update(analysis)
    assert analysis.updated_at > stamp
    assert repo.get_by_id(analysis.id) == analysis


def test_delete_removes_analysis(repo):
    analysis = _analysis("a", "oracle", "awr", datetime(2024, 1, 1))
    repo.create(analysis)
    repo.delete(analysis.id)
    with pytest.raises(AnalysisNotFoundError):
        repo.get_by_id(analysis.id)


def test_close_closes_connection(repo):
    repo.close()
    with pytest.raises(sqlite3.ProgrammingError):
        repo.get_recent(5)