# src/todo_ledger/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

PRIORITY_MIN = 0
PRIORITY_MAX = 5


class TaskNotFoundError(LookupError):
    """Raised by read-then-write operations when the task id is not in the live table."""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"task {task_id} not found")
        self.task_id = task_id


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def clamp_priority(value: int) -> int:
    return max(PRIORITY_MIN, min(PRIORITY_MAX, int(value)))


def split_topics(raw: str | None) -> list[str]:
    """Comma separated input -> trimmed, deduplicated, sorted topic list."""
    if not raw:
        return []
    return sorted({p.strip() for p in raw.split(",") if p.strip()})


def to_rfc3339(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def from_rfc3339(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        raise TypeError(f"expected timestamp string, got {type(raw).__name__}")
    value = raw.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(slots=True)
class Task:
    id: int
    title: str
    done: bool = False
    topics: list[str] = field(default_factory=list)
    tags: str = ""
    priority: int = 0

    due: datetime | None = None
    start: datetime | None = None

    recurring: bool = False
    recurrence_rule: str = ""
    recurrence_interval: int = 0

    notes: str = ""
    created_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "done": self.done,
            "topics": list(self.topics),
            "tags": self.tags,
            "priority": self.priority,
            "due": to_rfc3339(self.due),
            "start": to_rfc3339(self.start),
            "recurring": self.recurring,
            "recurrence_rule": self.recurrence_rule,
            "recurrence_interval": self.recurrence_interval,
            "notes": self.notes,
            "created_at": to_rfc3339(self.created_at),
            "completed_at": to_rfc3339(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        """
        Build a Task from its snapshot form.

        Raises KeyError/TypeError/ValueError when the payload is not task-shaped.
        """
        if not isinstance(data, dict):
            raise TypeError("task payload must be an object")

        title = data["title"]
        if not isinstance(title, str):
            raise TypeError("title must be a string")

        topics_raw = data.get("topics") or []
        if not isinstance(topics_raw, list):
            raise TypeError("topics must be a list")
        topics = sorted({str(t).strip() for t in topics_raw if str(t).strip()})

        created_at = from_rfc3339(data.get("created_at")) or utc_now()

        return cls(
            id=int(data.get("id") or 0),
            title=title,
            done=bool(data.get("done", False)),
            topics=topics,
            tags=str(data.get("tags") or ""),
            priority=clamp_priority(int(data.get("priority") or 0)),
            due=from_rfc3339(data.get("due")),
            start=from_rfc3339(data.get("start")),
            recurring=bool(data.get("recurring", False)),
            recurrence_rule=str(data.get("recurrence_rule") or ""),
            recurrence_interval=int(data.get("recurrence_interval") or 0),
            notes=str(data.get("notes") or ""),
            created_at=created_at,
            completed_at=from_rfc3339(data.get("completed_at")),
        )


@dataclass(frozen=True, slots=True)
class TrashEntry:
    path: Path
    deleted_at: datetime
    task: Task
