"""Records for projects, tags and tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Project:
    """A project that groups tasks; status is active, completed or archived."""

    id: int = 0
    name: str = ""
    description: str = ""
    status: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class Tag:
    """A label that can be attached to notes."""

    id: int = 0
    name: str = ""


@dataclass
class Task:
    """A unit of work inside a project.

    Status is pending, in_progress or completed; priority is low, medium or high.
    """

    id: int = 0
    project_id: int = 0
    title: str = ""
    description: str = ""
    status: str = ""
    priority: str = ""
    due_date: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


def new_project(name: str, description: str) -> Project:
    """Return an unsaved, active project stamped with the current time."""
    now = datetime.now()
    return Project(
        name=name,
        description=description,
        status="active",
        created_at=now,
        updated_at=now,
    )


def new_tag(name: str) -> Tag:
    """Return an unsaved tag with the given name."""
    return Tag(name=name)


def new_task(project_id: int, title: str, description: str, priority: str) -> Task:
    """Return an unsaved, pending task stamped with the current time."""
    now = datetime.now()
    return Task(
        project_id=project_id,
        title=title,
        description=description,
        status="pending",
        priority=priority,
        created_at=now,
        updated_at=now,
    )