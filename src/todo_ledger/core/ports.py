# src/todo_ledger/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the console layer.

The console depends on this Protocol instead of the concrete TaskStore.
This keeps the storage swappable and makes command tests easier.
"""

from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any, Protocol


class TaskRepo(Protocol):
    # Queries
    def fetch_all(self) -> list[Any]: ...
    def get_task(self, task_id: int) -> Any | None: ...
    def list_topics(self) -> list[str]: ...
    def topic_counts(self) -> dict[str, int]: ...

    # Task mutation
    def add(self, title: str) -> int: ...
    def set_done(self, task_id: int, done: bool) -> bool: ...
    def update_title(self, task_id: int, title: str) -> bool: ...
    def update_priority(self, task_id: int, priority: int) -> bool: ...
    def update_notes(self, task_id: int, notes: str) -> bool: ...
    def shift_due(self, task_id: int, delta_days: int) -> datetime: ...
    def update_metadata(
            self,
            task_id: int,
            topics_csv: str,
            tags: str,
            priority: int,
            due: datetime | None,
            start: datetime | None,
            recurring: bool,
    ) -> bool: ...
    def update_recurrence(self, task_id: int, rule: str, interval: int) -> bool: ...
    def edit_task(
            self,
            task_id: int,
            *,
            title: str,
            topics_csv: str = "",
            tags: str = "",
            priority: int = 0,
            due: datetime | None = None,
            start: datetime | None = None,
            rule: str = "",
            interval: int = 0,
    ) -> bool: ...

    # Delete / trash
    def delete(self, task_id: int) -> None: ...
    def delete_all_done(self) -> int: ...
    def list_trash(self) -> list[Any]: ...
    def restore_trash(self, entries: Iterable[Any]) -> list[int]: ...
    def purge_trash(self, entries: Iterable[Any]) -> int: ...
    def trash_directory(self) -> Path: ...

    # Topics
    def rename_topic(self, old: str, new: str) -> int: ...
    def delete_topic(self, name: str) -> int: ...
    def topic_note(self, topic: str) -> str: ...
    def set_topic_note(self, topic: str, body: str) -> None: ...
    def delete_topic_note(self, topic: str) -> None: ...

    # Recurrence
    def parse_recurrence_rule(self, raw: str) -> Any | None: ...
    def next_occurrence(self, task: Any, now: date | datetime | None = None) -> date | None: ...
