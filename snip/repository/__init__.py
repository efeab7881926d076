"""SQLite repositories for notes, tags, projects, tasks, checklists and stored analyses."""