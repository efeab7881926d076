"""Notes, tags, projects, tasks and checklists on SQLite, plus Oracle and PostgreSQL reports."""

__version__ = "0.1.0"