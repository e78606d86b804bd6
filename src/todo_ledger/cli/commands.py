# src/todo_ledger/cli/commands.py

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from datetime import datetime

from ..core.state import AppState
from ..tasks import recurrence, views
from ..tasks.task_models import Task, TaskNotFoundError

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        logger.debug("Command /%s args=%s", name, args)
        try:
            return handler(state, args)
        except TaskNotFoundError as e:
            return f"No such task: #{e.task_id}."

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


def _parse_id(raw: str) -> int | None:
    try:
        return int(raw.lstrip("#"))
    except ValueError:
        return None


def _parse_date(raw: str) -> datetime | None:
    """YYYY-MM-DD as local midnight; empty or "none" clears. Raises ValueError otherwise."""
    raw = raw.strip()
    if raw == "" or raw.lower() == "none":
        return None
    return datetime.strptime(raw, DATE_FORMAT)


def _fmt_day(dt: datetime | None) -> str:
    day = recurrence.local_day(dt)
    return day.isoformat() if day else "-"


def _task_line(t: Task) -> str:
    box = "[x]" if t.done else "[ ]"
    parts = [f"{box} #{t.id} {t.title}"]
    if t.priority:
        parts.append(f"p{t.priority}")
    if t.due is not None:
        parts.append(f"due {_fmt_day(t.due)}")
        overdue = views.overdue_days(t)
        if overdue:
            parts.append(f"[+{overdue}d]")
    summary = recurrence.rule_summary(t)
    if summary:
        parts.append(f"[recur {summary}]")
    if t.topics:
        parts.append("@" + ",".join(t.topics))
    return "  ".join(parts)


def _require_task(state: AppState, raw: str) -> Task | None:
    task_id = _parse_id(raw)
    if task_id is None:
        return None
    return state.store.get_task(task_id)


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list                       -> current filter and sort
    /list open|done|all         -> change filter
    /list due|priority|...      -> change sort
    /list @topic                -> only tasks with that topic
    """
    topic = None
    for a in args:
        low = a.lower()
        if a.startswith("@"):
            topic = a[1:]
        elif low in views.FILTER_MODES:
            state.filter_mode = low
        elif low in views.SORT_MODES:
            state.sort_mode = low
        else:
            return f"Unknown /list option: {a}"

    tasks = state.store.fetch_all()
    if topic is not None:
        tasks = views.tasks_with_topic(tasks, topic)
    tasks = views.sort_tasks(views.filter_done(tasks, state.filter_mode), state.sort_mode)
    if not tasks:
        return f"No tasks (filter={state.filter_mode})."
    header = f"Tasks (filter={state.filter_mode}, sort={state.sort_mode}):"
    return "\n".join([header, *(f"  {_task_line(t)}" for t in tasks)])


def cmd_add(state: AppState, args: list[str]) -> str:
    title = " ".join(args).strip()
    if not title:
        return "Usage: /add <title>"
    task_id = state.store.add(title)
    return f"Added #{task_id}: {title}"


def _set_done(state: AppState, args: list[str], done: bool) -> str:
    task_id = _parse_id(args[0]) if args else None
    if task_id is None:
        return "Usage: /done <id>" if done else "Usage: /undo <id>"
    if not state.store.set_done(task_id, done):
        return f"No such task: #{task_id}."
    return f"#{task_id} marked {'done' if done else 'open'}."


def cmd_done(state: AppState, args: list[str]) -> str:
    return _set_done(state, args, True)


def cmd_undo(state: AppState, args: list[str]) -> str:
    return _set_done(state, args, False)


def cmd_rm(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args[0]) if args else None
    if task_id is None:
        return "Usage: /rm <id>"
    state.store.delete(task_id)
    return f"#{task_id} moved to trash."


def cmd_clear(state: AppState, args: list[str]) -> str:
    n = state.store.delete_all_done()
    return f"Moved {n} done task(s) to trash."


def cmd_title(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args[0]) if args else None
    title = " ".join(args[1:]).strip()
    if task_id is None or not title:
        return "Usage: /title <id> <new title>"
    if not state.store.update_title(task_id, title):
        return f"No such task: #{task_id}."
    return f"#{task_id} renamed."


def cmd_prio(state: AppState, args: list[str]) -> str:
    """/prio <id> <0-5|+|->"""
    if len(args) < 2:
        return "Usage: /prio <id> <0-5|+|->"
    task = _require_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}."
    raw = args[1]
    if raw == "+":
        value = task.priority + 1
    elif raw == "-":
        value = task.priority - 1
    else:
        try:
            value = int(raw)
        except ValueError:
            return f"Priority must be a number, got {raw!r}."
    state.store.update_priority(task.id, value)
    return f"#{task.id} priority set."


def cmd_due(state: AppState, args: list[str]) -> str:
    """/due <id> <+N|-N> - shift the due date by whole days."""
    task_id = _parse_id(args[0]) if args else None
    if task_id is None or len(args) < 2:
        return "Usage: /due <id> <+N|-N>"
    try:
        days = int(args[1])
    except ValueError:
        return f"Day offset must be a number, got {args[1]!r}."
    new_due = state.store.shift_due(task_id, days)
    return f"#{task_id} due {_fmt_day(new_due)}."


_META_KEYS = ("title", "topics", "tags", "prio", "due", "start", "recur", "interval")


def cmd_meta(state: AppState, args: list[str]) -> str:
    """
    /meta <id> key=value ...

    Keys: title, topics (comma separated), tags, prio, due, start (YYYY-MM-DD or none),
    recur (rule text), interval (days). Omitted keys keep their current value;
    topics given here replace the whole set.
    """
    if not args:
        return "Usage: /meta <id> " + " ".join(f"{k}=..." for k in _META_KEYS)
    task = _require_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}."

    values: dict[str, str] = {}
    for a in args[1:]:
        key, sep, value = a.partition("=")
        key = key.strip().lower()
        if not sep or key not in _META_KEYS:
            return f"Unknown field {a!r}. Known: {', '.join(_META_KEYS)}."
        values[key] = value

    title = values.get("title", task.title).strip()
    if not title:
        return "Title cannot be empty."
    try:
        priority = int(values["prio"]) if values.get("prio", "").strip() else task.priority
    except ValueError:
        return f"Priority invalid: {values['prio']!r}."
    try:
        due = _parse_date(values["due"]) if "due" in values else task.due
    except ValueError:
        return f"Due date invalid: {values['due']!r} (want YYYY-MM-DD)."
    try:
        start = _parse_date(values["start"]) if "start" in values else task.start
    except ValueError:
        return f"Start date invalid: {values['start']!r} (want YYYY-MM-DD)."
    try:
        interval = int(values["interval"] or 0) if "interval" in values else task.recurrence_interval
    except ValueError:
        return f"Interval invalid: {values['interval']!r}."

    state.store.edit_task(
        task.id,
        title=title,
        topics_csv=values.get("topics", ",".join(task.topics)),
        tags=values.get("tags", task.tags),
        priority=priority,
        due=due,
        start=start,
        rule=values.get("recur", task.recurrence_rule),
        interval=interval,
    )
    updated = state.store.get_task(task.id)
    return f"Saved: {_task_line(updated)}" if updated else f"#{task.id} saved."


def cmd_recur(state: AppState, args: list[str]) -> str:
    """/recur <id> <rule text|none>"""
    if len(args) < 2:
        return "Usage: /recur <id> <rule>, e.g. /recur 3 every 2 weeks on Fri"
    task = _require_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}."
    raw = " ".join(args[1:])
    state.store.edit_task(
        task.id,
        title=task.title,
        topics_csv=",".join(task.topics),
        tags=task.tags,
        priority=task.priority,
        due=task.due,
        start=task.start,
        rule=raw,
        interval=0,
    )
    spec = recurrence.parse_rule(raw)
    if spec is None and raw.strip().lower() not in ("", recurrence.NO_RULE):
        return f"#{task.id} recurrence saved as free text (not a known rule): {raw}"
    return f"#{task.id} recurrence: {spec.label if spec else recurrence.NO_RULE}"


def cmd_notes(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args[0]) if args else None
    if task_id is None:
        return "Usage: /notes <id> <text>"
    if not state.store.update_notes(task_id, " ".join(args[1:])):
        return f"No such task: #{task_id}."
    return f"#{task_id} notes saved."


def cmd_show(state: AppState, args: list[str]) -> str:
    task = _require_task(state, args[0]) if args else None
    if task is None:
        return "Usage: /show <id>"
    lines = [
        f"#{task.id} {task.title}",
        f"  done:      {'yes' if task.done else 'no'}",
        f"  topics:    {', '.join(task.topics) or '-'}",
        f"  tags:      {task.tags or '-'}",
        f"  priority:  {task.priority}",
        f"  due:       {_fmt_day(task.due)}",
        f"  start:     {_fmt_day(task.start)}",
        f"  created:   {_fmt_day(task.created_at)}",
    ]
    if task.completed_at is not None:
        lines.append(f"  completed: {_fmt_day(task.completed_at)}")
    summary = recurrence.rule_summary(task)
    if summary:
        nxt = state.store.next_occurrence(task)
        lines.append(f"  recurs:    {summary}" + (f" (next {nxt.isoformat()})" if nxt else ""))
    if task.notes:
        lines.extend(["", task.notes])
    return "\n".join(lines)


def cmd_find(state: AppState, args: list[str]) -> str:
    query = " ".join(args).strip()
    if not query:
        return "Usage: /find <text>"
    found = views.search(state.store.fetch_all(), query)
    if not found:
        return f"Nothing matches {query!r}."
    return "\n".join(f"  {_task_line(t)}" for t in found)


def cmd_topics(state: AppState, args: list[str]) -> str:
    counts = state.store.topic_counts()
    names = state.store.list_topics()
    if not names:
        return "No topics."
    lines = ["Topics:"]
    for name in names:
        note = " (note)" if state.store.topic_note(name) else ""
        lines.append(f"  {name} [{counts.get(name, 0)}]{note}")
    return "\n".join(lines)


def cmd_topic(state: AppState, args: list[str]) -> str:
    """
    /topic rename <old> <new>  -> move tasks and note to <new>
    /topic rm <name>           -> remove the topic from all tasks (tasks stay)
    """
    if len(args) >= 3 and args[0].lower() == "rename":
        n = state.store.rename_topic(args[1], args[2])
        if n == 0:
            return f"No tasks had topic {args[1]!r}; note (if any) moved."
        return f"Renamed {args[1]!r} -> {args[2]!r} on {n} task(s)."
    if len(args) >= 2 and args[0].lower() in ("rm", "delete"):
        n = state.store.delete_topic(args[1])
        return f"Removed topic {args[1]!r} from {n} task(s)."
    return "Usage: /topic rename <old> <new> | /topic rm <name>"


def cmd_note(state: AppState, args: list[str]) -> str:
    """
    /note <topic>          -> show note
    /note <topic> <text>   -> replace note
    /note <topic> -        -> clear note
    """
    if not args:
        return "Usage: /note <topic> [text|-]"
    topic = args[0]
    if len(args) == 1:
        body = state.store.topic_note(topic)
        return body if body else f"No note for {topic!r}."
    text = " ".join(args[1:])
    if text.strip() == "-":
        state.store.delete_topic_note(topic)
        return f"Note for {topic!r} cleared."
    state.store.set_topic_note(topic, text)
    return f"Note for {topic!r} saved."


def _pick_trash(state: AppState, raw: list[str]) -> list:
    if any(r.lower() == "all" for r in raw):
        return list(state.last_trash)
    picked = []
    for r in raw:
        try:
            idx = int(r)
        except ValueError:
            continue
        if 1 <= idx <= len(state.last_trash):
            picked.append(state.last_trash[idx - 1])
    return picked


def cmd_trash(state: AppState, args: list[str]) -> str:
    """
    /trash                  -> list trashed tasks (numbered)
    /trash restore <n|all>  -> restore by number from the last listing
    /trash purge <n|all>    -> delete for good
    """
    if not args:
        entries = state.store.list_trash()
        state.last_trash = entries
        if not entries:
            return f"Trash is empty ({state.store.trash_directory()})."
        lines = [f"Trash ({len(entries)}):"]
        for i, e in enumerate(entries, start=1):
            deleted = e.deleted_at.astimezone().strftime("%Y-%m-%d %H:%M")
            lines.append(f"  {i}. {e.task.title}  (deleted {deleted})")
        return "\n".join(lines)

    sub = args[0].lower()
    picked = _pick_trash(state, args[1:])
    if sub in ("restore", "purge") and not picked:
        return "Nothing selected. Run /trash first, then pick numbers or 'all'."

    if sub == "restore":
        new_ids = state.store.restore_trash(picked)
        state.last_trash = []
        return f"Restored {len(new_ids)} task(s): " + ", ".join(f"#{i}" for i in new_ids)
    if sub == "purge":
        n = state.store.purge_trash(picked)
        state.last_trash = []
        return f"Purged {n} trash entr{'y' if n == 1 else 'ies'}."
    return "Usage: /trash | /trash restore <n|all> | /trash purge <n|all>"


def cmd_report(state: AppState, args: list[str]) -> str:
    settings = state.settings
    report = views.build_report(
        state.store.fetch_all(),
        upcoming_days=int(getattr(settings, "upcoming_days", 3)),
        recent_limit=int(getattr(settings, "recent_limit", 10)),
    )
    return views.render_report(report)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="List tasks: /list [all|open|done] [auto|due|priority|created|state] [@topic].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <title>.", aliases=["a"])
registry.register("done", cmd_done, help_text="Mark done: /done <id>.")
registry.register("undo", cmd_undo, help_text="Mark open again: /undo <id>.")
registry.register("rm", cmd_rm, help_text="Move a task to trash: /rm <id>.")
registry.register("clear", cmd_clear, help_text="Move all done tasks to trash.")
registry.register("title", cmd_title, help_text="Rename a task: /title <id> <text>.")
registry.register("prio", cmd_prio, help_text="Set priority: /prio <id> <0-5|+|->.")
registry.register("due", cmd_due, help_text="Shift due date: /due <id> <+N|-N>.")
registry.register("meta", cmd_meta, help_text="Edit fields: /meta <id> topics=a,b due=YYYY-MM-DD recur='every week'.")
registry.register("recur", cmd_recur, help_text="Set recurrence: /recur <id> <rule|none>.")
registry.register("notes", cmd_notes, help_text="Set task notes: /notes <id> <text>.")
registry.register("show", cmd_show, help_text="Show task details: /show <id>.")
registry.register("find", cmd_find, help_text="Search title/topics/tags/due: /find <text>.")
registry.register("topics", cmd_topics, help_text="List topics with task counts.")
registry.register("topic", cmd_topic, help_text="Topic admin: /topic rename <old> <new> | /topic rm <name>.")
registry.register("note", cmd_note, help_text="Topic note: /note <topic> [text|-].")
registry.register("trash", cmd_trash, help_text="Trash: /trash | /trash restore <n|all> | /trash purge <n|all>.")
registry.register("report", cmd_report, help_text="Reminder report: overdue, today, upcoming, recurring.")
