# src/todo_ledger/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .ports import TaskRepo


@dataclass
class AppState:
    """
    Everything a command handler needs, passed explicitly.

    The repository is injected here by the composition root (cli/bootstrap.py);
    it keeps no reference back to the console.
    """

    settings: Any
    store: TaskRepo

    filter_mode: str = "all"
    sort_mode: str = "auto"

    # trash entries as last listed, so "/trash restore 2" refers to what the user saw
    last_trash: list[Any] = field(default_factory=list)
