# src/todo_ledger/tasks/recurrence.py

"""
Recurrence rules.

Parses the small rule grammar used by the task editor and computes the next
occurrence of a recurring task:

    every [N] (day|days|week|weeks|month|months) [on <weekday>]
    daily | weekly | monthly [on <weekday>]

Everything here works on calendar days in the local time zone. Time of day is
discarded before any comparison, and "next" always means strictly after today.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from dateutil.relativedelta import relativedelta

_EVERY_RE = re.compile(
    r"^every\s*(\d+)?\s*(day|days|week|weeks|month|months)(?:\s+on\s+([a-z]+))?$",
    re.IGNORECASE,
)
_ALIAS_RE = re.compile(r"^(daily|weekly|monthly)(?:\s+on\s+([a-z]+))?$", re.IGNORECASE)

_ALIAS_UNITS = {"daily": "day", "weekly": "week", "monthly": "month"}

_WEEKDAYS = {
    "mon": 0,
    "monday": 0,
    "tue": 1,
    "tues": 1,
    "tuesday": 1,
    "wed": 2,
    "wednesday": 2,
    "thu": 3,
    "thur": 3,
    "thurs": 3,
    "thursday": 3,
    "fri": 4,
    "friday": 4,
    "sat": 5,
    "saturday": 5,
    "sun": 6,
    "sunday": 6,
}
WEEKDAY_SHORT = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

NO_RULE = "none"


@dataclass(frozen=True, slots=True)
class RecurrenceSpec:
    every: int
    unit: str  # "day" | "week" | "month"
    weekday: int | None  # 0 = Monday .. 6 = Sunday
    label: str


def parse_weekday(token: str | None) -> int | None:
    if not token:
        return None
    return _WEEKDAYS.get(token.strip().lower())


def format_label(every: int, unit: str, weekday: int | None = None) -> str:
    if every == 1:
        label = f"every {unit}"
    else:
        label = f"every {every} {unit}s"
    if weekday is not None:
        label += f" on {WEEKDAY_SHORT[weekday]}"
    return label


def parse_rule(raw: str | None) -> RecurrenceSpec | None:
    """Return the structured form of a rule, or None if the text is not in the grammar."""
    text = " ".join((raw or "").split())
    if not text:
        return None

    m = _EVERY_RE.match(text)
    if m:
        count = int(m.group(1)) if m.group(1) else 1
        if count <= 0:
            count = 1
        unit = m.group(2).lower().rstrip("s")
        weekday = parse_weekday(m.group(3))
        return RecurrenceSpec(count, unit, weekday, format_label(count, unit, weekday))

    m = _ALIAS_RE.match(text)
    if m:
        unit = _ALIAS_UNITS[m.group(1).lower()]
        weekday = parse_weekday(m.group(2))
        return RecurrenceSpec(1, unit, weekday, format_label(1, unit, weekday))

    return None


def _has_rule(rule: str | None) -> bool:
    r = (rule or "").strip().lower()
    return r != "" and r != NO_RULE


def is_recurring(task: Any) -> bool:
    return bool(task.recurring) or _has_rule(task.recurrence_rule)


def local_day(value: date | datetime | None) -> date | None:
    """Calendar day of a timestamp in local time. Naive datetimes are already local."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def base_date(task: Any) -> date | None:
    for value in (task.due, task.start, task.created_at):
        if value is not None:
            return local_day(value)
    return None


# ---- stepping ----


def next_by_days(base: date, now: date, interval: int) -> date:
    if interval <= 0:
        return base
    if base > now:
        return base
    steps = (now - base).days // interval + 1
    return base + timedelta(days=steps * interval)


def _monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def next_weekly_on(base: date, now: date, every: int, weekday: int) -> date:
    """
    Weekday in the rule's fixed week cadence, strictly after `now`.

    Weeks are counted from the Monday of the base week. Occurrence weeks are
    1, 1 + every, 1 + 2*every, ... (and week 0 too when every == 1), so the
    cadence never depends on `now`.
    """
    every = max(1, every)
    anchor = _monday_of(base)
    weeks = max(0, (_monday_of(now) - anchor).days // 7)
    # round up into the cadence
    weeks += (1 - weeks) % every
    while True:
        candidate = anchor + timedelta(weeks=weeks, days=weekday)
        if candidate > now:
            return candidate
        weeks += every


def next_by_months(base: date, now: date, every: int) -> date:
    every = max(1, every)
    step = 0
    candidate = base
    while candidate <= now:
        step += every
        candidate = base + relativedelta(months=step)
    return candidate


def first_weekday_of_month(day: date, weekday: int) -> date:
    first = day.replace(day=1)
    return first + timedelta(days=(weekday - first.weekday()) % 7)


def next_monthly_on(base: date, now: date, every: int, weekday: int) -> date:
    every = max(1, every)
    month = base.replace(day=1)
    candidate = first_weekday_of_month(month, weekday)
    while candidate <= now:
        month = month + relativedelta(months=every)
        candidate = first_weekday_of_month(month, weekday)
    return candidate


def next_from_spec(base: date, now: date, spec: RecurrenceSpec) -> date:
    if spec.unit == "day":
        return next_by_days(base, now, spec.every)
    if spec.unit == "week":
        if spec.weekday is not None:
            return next_weekly_on(base, now, spec.every, spec.weekday)
        return next_by_days(base, now, spec.every * 7)
    if spec.unit == "month":
        if spec.weekday is not None:
            return next_monthly_on(base, now, spec.every, spec.weekday)
        return next_by_months(base, now, spec.every)
    return base


def next_occurrence(task: Any, now: date | datetime | None = None) -> date | None:
    """
    Next calendar day (strictly after `now`) on which a recurring task falls.

    A parsed rule wins; an unparsed rule falls back to `recurrence_interval`
    days when that is positive. Returns None otherwise.
    """
    if not is_recurring(task):
        return None
    base = base_date(task)
    if base is None:
        return None
    today = local_day(now) if now is not None else date.today()

    spec = parse_rule(task.recurrence_rule)
    if spec is not None:
        return next_from_spec(base, today, spec)
    interval = int(task.recurrence_interval or 0)
    if interval > 0:
        return next_by_days(base, today, interval)
    return None


# ---- display / edit helpers ----


def rule_label(task: Any) -> str:
    spec = parse_rule(task.recurrence_rule)
    if spec is not None:
        return spec.label
    rule = (task.recurrence_rule or "").strip()
    if not _has_rule(rule):
        return "recur"
    return rule


def rule_summary(task: Any) -> str:
    """Short text for list badges: the label, or `<rule>/<N>d` for interval-driven tasks."""
    if not is_recurring(task):
        return ""
    spec = parse_rule(task.recurrence_rule)
    if spec is not None:
        return spec.label
    rule = (task.recurrence_rule or "").strip()
    if not _has_rule(rule):
        rule = "custom"
    if task.recurrence_interval and task.recurrence_interval > 0:
        return f"{rule}/{task.recurrence_interval}d"
    return rule


def normalize_rule(rule_input: str | None, interval: int = 0) -> tuple[str, int, bool]:
    """
    Canonicalize edit input into (rule, interval, recurring).

    - a rule in the grammar becomes its label and clears the interval
    - an empty/"none" rule with a positive interval becomes "every N days"
    - an empty/"none" rule without interval becomes "none"
    - any other text is kept as an unparsed rule next to the interval
    """
    rule = (rule_input or "").strip()
    interval = max(0, int(interval or 0))

    spec = parse_rule(rule)
    if spec is not None:
        return spec.label, 0, True

    if not _has_rule(rule):
        if interval > 0:
            return format_label(interval, "day"), 0, True
        return NO_RULE, 0, False

    return rule, interval, True
