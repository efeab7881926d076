[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "snip"
version = "0.1.0"
description = "Note, tag, project, task and checklist storage on SQLite, with Oracle and PostgreSQL diagnostic reports"
requires-python = ">=3.10"
dependencies = []
keywords = ["notes", "tasks", "checklists", "sqlite", "oracle", "postgresql", "awr", "ash", "dba"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Front-Ends",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["snip"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
