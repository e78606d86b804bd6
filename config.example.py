# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file,
see src/todo_ledger/config.py). Nothing imports this file; it only lists what can be set.
"""

ENV_VARS = {
    # App / logging
    "TODO_APP_NAME": "App display name (default: todo).",
    "TODO_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths (gitignored)
    "TODO_DATA_DIR": "Local data directory (default: .local/todo). Also holds todo.log.",
    "TODO_DB_PATH": "TaskStore SQLite path (default: <data_dir>/todo.sqlite3).",
    "TODO_TRASH_DIR": "Directory for deleted-task JSON snapshots (default: <data_dir>/trash).",
    # Views
    "TODO_DEFAULT_FILTER": "Initial /list filter: all, open or done (default: all).",
    "TODO_RECENT_LIMIT": "Rows in the report's recently added/done sections (default: 10).",
    "TODO_UPCOMING_DAYS": "Days ahead counted as upcoming in the report (default: 3).",
}

EXAMPLE_DOTENV = """\
TODO_LOG_LEVEL=DEBUG
TODO_DATA_DIR=~/.local/share/todo
TODO_DEFAULT_FILTER=open
TODO_UPCOMING_DAYS=7
"""
