# snip

snip is a library. It stores notes, tags, projects, tasks and checklists in a
SQLite database. It also builds Markdown reports from the diagnostic views of
Oracle and PostgreSQL servers.

## Installation

```
pip install .
```

To install the test tools as well:

```
pip install ".[test]"
```

## Storage

Each repository takes an open `sqlite3.Connection`. The repository commits
each write itself. `close()` closes the connection. Timestamps are stored as
ISO-format text.

The repositories do not create tables. The schema must already exist, with
these tables:

- `notes`
- `tags`
- `notes_tags`
- `notes_fts` (a full-text table)
- `projects`
- `tasks`
- `checklists`
- `checklist_items`
- `db_analyses`

```python
import sqlite3

from snip.models import new_project, new_task
from snip.repository.projects import ProjectRepository
from snip.repository.tasks import TaskRepository

db = sqlite3.connect("snip.db")

projects = ProjectRepository(db)
project = new_project("Website", "Relaunch of the site")   # status "active"
projects.create(project)                                   # sets project.id

tasks = TaskRepository(db)
task = new_task(project.id, "Write copy", "Landing page text", "high")  # status "pending"
tasks.create(task)
tasks.toggle_complete(task.id)   # pending -> completed, completed -> pending
```

Looking up a single record by id or name raises an exception if nothing
matches:

| Exception | Module |
|---|---|
| `ProjectNotFoundError` | `snip.repository.projects` |
| `TaskNotFoundError` | `snip.repository.tasks` |
| `TagNotFoundError` | `snip.repository.tags` |
| `NoteNotFoundError` | `snip.repository.notes` |
| `ChecklistNotFoundError` | `snip.repository.checklists` |
| `AnalysisNotFoundError` | `snip.repository.dbanalyses` |

All of these are subclasses of `LookupError`.

### Projects, tasks and tags

The records `Project`, `Task` and `Tag` are dataclasses in `snip.models`.

- `ProjectRepository.get_all(status)` lists projects newest first. Pass an empty
  status to list all of them.
- `TaskRepository.get_all(status)` and `get_by_project_id(project_id, status)`
  work the same way.
- `TagRepository.get_or_create(name)` returns an existing tag, or creates one
  with that name.

### Notes

`snip.repository.notes.NoteRepository` works with `Note` and `NoteWithTags`
records:

- `get_all(is_asc, tag_id)` lists notes by creation time. A `tag_id` other than
  `0` lists only the notes with that tag.
- `get_recent(limit)` returns the notes updated most recently. A negative limit
  returns all notes.
- `search(term)` runs a full-text match against `notes_fts`.
- `add_tag_to_note`, `remove_tag_from_note` and `get_tags_by_note` manage the
  tags linked to a note.
- `export_notes(export_dir, since, format)` writes one file per note and prints
  a line for each file. The format is `"json"` or `"markdown"`; any other
  format raises `ValueError`. File names have the form `<id>_<title>`, where the
  title is cleaned by `sanitize_filename`. That function replaces unsafe
  characters and spaces with `_` and cuts the result to 50 characters.

### Checklists

`ChecklistRepository` stores `Checklist` records. A checklist can belong to a
task, to a project, or to neither.

`ChecklistItemRepository` stores `ChecklistItem` records:

- `get_by_checklist_id` returns items sorted by `order`, then by creation time.
- `toggle_complete` switches an item between done and not done.

### Stored analyses

`snip.repository.dbanalyses.DBAnalysisRepository` keeps `DBAnalysis` records,
which hold the results of past analyses.

- `get_all(limit, db_type, analysis_type)` filters on every argument that is
  not empty. A limit of `0` or less returns every match.
- `get_recent(limit)` returns the newest analyses of any kind.

### Input checks

`snip.validation.Validator` has three checks:

- `validate_note(title)` raises `ValidationError` ("title is required") when the
  title is empty or only whitespace.
- `check_string` returns `None` for an empty string.
- `check_int` parses a decimal 64-bit integer. It returns `0` for anything
  else.

## Database reports

The analyzers take a DB-API connection to the server being examined. They use
its `cursor()` method and return Markdown text. If the main query of a report
fails, the analyzer raises `OracleAnalysisError` or `PostgreSQLAnalysisError`.
If one of the secondary sections fails, that section is left empty.

### Oracle

`snip.oracle.analyzer.OracleAnalyzer` provides these reports:

- `get_snapshots`
- `generate_awr_report`, which takes an `AWRReportRequest`. If the request has
  no snapshot ids, it chooses them from the time range.
- `analyze_ash`, which takes an `ASHRequest`.
- `get_execution_plan`
- `get_sql_statistics`
- `analyze_pdbs`
- `analyze_specific_pdb`

### Oracle requests in plain language

`snip.oracle.interpreter.AINaturalLanguageInterpreter` turns requests written
in plain language into request objects. It needs a client object that has a
`generate_content(prompt, max_tokens)` method.

- `parse_awr_request` returns an `AWRReportRequest`.
- `parse_ash_request` returns an `ASHRequest`.
- `interpret_analysis_results` asks the client for a Markdown summary of a
  report.

The parsers that read the client's reply can also be called on their own:
`parse_awr_request_from_json` and `parse_ash_request_from_json`.

The keyword parsers `parse_awr_request_manual` and `parse_ash_request_manual`
read the request text itself, for example "últimas 2 horas", "ontem", "hoje"
or "snap 100 e 200". They need no client:

```python
from snip.oracle.interpreter import parse_awr_request_manual

req = parse_awr_request_manual("relatório das últimas 2 horas", [])
```

### PostgreSQL

`snip.postgresql.analyzer.PostgreSQLAnalyzer` provides these reports:

- `analyze_pg_stat(stat_type)`, where `stat_type` is one of `"database"`,
  `"table"`, `"index"`, `"query"` or `"activity"`.
- `get_execution_plan(query)`, which runs `EXPLAIN ANALYZE`.
- `analyze_replication`
- `analyze_locks`
- `analyze_fragmentation`

```python
from snip.postgresql.analyzer import PostgreSQLAnalyzer

report = PostgreSQLAnalyzer(pg_connection).analyze_locks()
print(report)
```

## What the package does not do

- It has no command-line program. Everything is used from Python.
- It does not create or migrate the SQLite schema.
- It ships no AI client. You supply one to `AINaturalLanguageInterpreter`.
- It includes no database drivers. You open the Oracle or PostgreSQL
  connection yourself.

## Running the tests

```
pytest
```