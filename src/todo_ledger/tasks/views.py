# src/todo_ledger/tasks/views.py

"""
Read-only helpers over fetched tasks: ordering, filtering, search and the
reminder report. Nothing here touches the database.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from . import recurrence
from .task_models import Task

SORT_MODES = ("auto", "state", "due", "priority", "created", "id")
FILTER_MODES = ("all", "open", "done")


def _due_key(t: Task) -> tuple[int, float]:
    if t.due is None:
        return (1, 0.0)
    return (0, t.due.timestamp())


def sort_tasks(tasks: Iterable[Task], mode: str = "id") -> list[Task]:
    """
    Stable sort by one of:
      auto     - open first, then due (unset last), then priority desc, then id
      state    - open first, then id
      due      - due (unset last), then id
      priority - priority desc, then id
      created  - creation time
      anything else keeps id order
    """
    items = sorted(tasks, key=lambda t: t.id)
    mode = (mode or "id").strip().lower()

    if mode == "auto":
        items.sort(key=lambda t: (t.done, _due_key(t), -t.priority, t.id))
    elif mode == "state":
        items.sort(key=lambda t: (t.done, t.id))
    elif mode == "due":
        items.sort(key=lambda t: (_due_key(t), t.id))
    elif mode == "priority":
        items.sort(key=lambda t: (-t.priority, t.id))
    elif mode == "created":
        items.sort(key=lambda t: t.created_at)
    return items


def filter_done(tasks: Iterable[Task], mode: str = "all") -> list[Task]:
    mode = (mode or "all").strip().lower()
    if mode == "open":
        return [t for t in tasks if not t.done]
    if mode == "done":
        return [t for t in tasks if t.done]
    return list(tasks)


def matches_query(task: Task, query: str) -> bool:
    """Case-insensitive substring match on title, topics, tags and due date."""
    q = (query or "").strip().lower()
    if not q:
        return True
    fields = [task.title, " ".join(task.topics), task.tags]
    if task.due is not None:
        fields.append(recurrence.local_day(task.due).isoformat())
    return any(q in (f or "").lower() for f in fields)


def search(tasks: Iterable[Task], query: str) -> list[Task]:
    return [t for t in tasks if matches_query(t, query)]


def tasks_with_topic(tasks: Iterable[Task], topic: str) -> list[Task]:
    topic = (topic or "").strip()
    if not topic:
        return []
    return [t for t in tasks if topic in t.topics]


def untopiced(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if not t.topics]


def recently_added(tasks: Iterable[Task], limit: int = 10) -> list[Task]:
    items = sorted(tasks, key=lambda t: (t.created_at, t.id), reverse=True)
    return items[: max(0, limit)]


def recently_done(tasks: Iterable[Task], limit: int = 10) -> list[Task]:
    items = [t for t in tasks if t.done and t.completed_at is not None]
    items.sort(key=lambda t: (t.completed_at, t.id), reverse=True)
    return items[: max(0, limit)]


def _today(now: date | datetime | None) -> date:
    return recurrence.local_day(now) if now is not None else date.today()


def is_overdue(task: Task, now: date | datetime | None = None) -> bool:
    """Open task whose due day is before today."""
    if task.done or task.due is None:
        return False
    return recurrence.local_day(task.due) < _today(now)


def overdue_days(task: Task, now: date | datetime | None = None) -> int:
    if not is_overdue(task, now):
        return 0
    return (_today(now) - recurrence.local_day(task.due)).days


@dataclass(slots=True)
class RecurringLine:
    task: Task
    label: str
    next_date: date | None


@dataclass(slots=True)
class Report:
    today: date
    upcoming_days: int
    overdue: list[Task] = field(default_factory=list)
    due_today: list[Task] = field(default_factory=list)
    upcoming: list[Task] = field(default_factory=list)
    recurring: list[RecurringLine] = field(default_factory=list)
    recently_added: list[Task] = field(default_factory=list)
    recently_done: list[Task] = field(default_factory=list)

    @property
    def all_clear(self) -> bool:
        return not (self.overdue or self.due_today or self.upcoming)


def build_report(
    tasks: Sequence[Task],
    now: date | datetime | None = None,
    *,
    upcoming_days: int = 3,
    recent_limit: int = 10,
) -> Report:
    today = _today(now)
    horizon = today + timedelta(days=max(0, upcoming_days))
    report = Report(today=today, upcoming_days=upcoming_days)

    for t in tasks:
        if recurrence.is_recurring(t) and not t.done:
            report.recurring.append(
                RecurringLine(
                    task=t,
                    label=recurrence.rule_label(t),
                    next_date=recurrence.next_occurrence(t, today),
                )
            )
        if t.done or t.due is None:
            continue
        due = recurrence.local_day(t.due)
        if due < today:
            report.overdue.append(t)
        elif due == today:
            report.due_today.append(t)
        elif due < horizon:
            report.upcoming.append(t)

    report.recently_added = recently_added(tasks, recent_limit)
    report.recently_done = recently_done(tasks, recent_limit)
    return report


def _truncate(text: str, width: int = 40) -> str:
    if len(text) <= width:
        return text
    return text[: width - 1] + "…"


def _day(dt: datetime | None) -> str:
    day = recurrence.local_day(dt)
    return day.isoformat() if day else "unknown"


def render_report(report: Report) -> str:
    lines: list[str] = [report.today.strftime("%A, %b %d, %Y"), ""]

    def section(title: str, items: list[str]) -> None:
        lines.append(f"{title} ({len(items)})")
        lines.extend(items or ["  (none)"])
        lines.append("")

    if report.all_clear:
        lines.extend(["  All clear. No due tasks.", ""])
    else:
        if report.overdue:
            section(
                "Overdue",
                [f"  • #{t.id} {_truncate(t.title):<40}  due {_day(t.due)}" for t in report.overdue],
            )
        if report.due_today:
            section(
                "Due Today",
                [f"  • #{t.id} {_truncate(t.title):<40}  due {_day(t.due)}" for t in report.due_today],
            )
        if report.upcoming:
            section(
                f"Upcoming ({report.upcoming_days}d)",
                [f"  • #{t.id} {_truncate(t.title):<40}  due {_day(t.due)}" for t in report.upcoming],
            )

    if report.recurring:
        rows = []
        for r in report.recurring:
            due = f"due {_day(r.task.due)}" if r.task.due else "no due"
            line = f"  • #{r.task.id} {_truncate(r.task.title):<40}  [{r.label}] {due}"
            if r.next_date is not None:
                line += f" • next {r.next_date.isoformat()}"
            rows.append(line)
        section("Recurring Tasks", rows)

    section(
        "Recently Added",
        [f"  • #{t.id} {_truncate(t.title):<40}  created {_day(t.created_at)}" for t in report.recently_added],
    )
    section(
        "Recently Done",
        [f"  • #{t.id} {_truncate(t.title):<40}  done {_day(t.completed_at)}" for t in report.recently_done],
    )
    return "\n".join(lines).rstrip() + "\n"
