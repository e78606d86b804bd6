# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from todo_ledger.core.state import AppState
from todo_ledger.tasks.task_store import TaskStore

from .fakes import FIXED_NOW, FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the console commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="todo",
        log_level="INFO",
        data_dir=tmp_path,
        db_path=tmp_path / "todo.sqlite3",
        trash_dir=tmp_path / "trash",
        default_filter="all",
        recent_limit=10,
        upcoming_days=3,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(FIXED_NOW)


@pytest.fixture()
def store(settings: SimpleNamespace, clock: FakeClock):
    """Real SQLite store in tmp_path; its correctness is what most tests check."""
    s = TaskStore(settings.db_path, settings.trash_dir, clock=clock)
    yield s
    s.close()


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore) -> AppState:
    return AppState(settings=settings, store=store)
