# src/todo_ledger/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from . import recurrence
from .recurrence import RecurrenceSpec
from .task_models import (
    Task,
    TaskNotFoundError,
    TrashEntry,
    clamp_priority,
    from_rfc3339,
    split_topics,
    utc_now,
)
from .topic_notes import TopicNoteStore
from .trash import TrashBin

logger = logging.getLogger(__name__)

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on old builds (999).
_IN_CHUNK = 500

_TASK_COLUMNS = (
    "id, title, done, tags, priority, due_at, start_at, recurring, "
    "recurrence_rule, recurrence_interval, notes, created_at, completed_at"
)


def _to_ts(dt: datetime | None) -> float | None:
    if dt is None:
        return None
    return float(dt.timestamp())


def _from_ts(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, str):
        # rows written by older builds hold RFC3339 text
        try:
            raw = float(raw)
        except ValueError:
            return from_rfc3339(raw)
    return datetime.fromtimestamp(float(raw), tz=timezone.utc)


class TaskStore:
    """
    SQLite task repository.

    Tables:
    - tasks:       one row per live task
    - task_topics: (task_id, topic) many-to-many association
    - topic_notes: free-text note per topic (see TopicNoteStore)

    Deleted tasks do not stay in SQLite: they are written to the trash directory
    as JSON snapshots first and only then removed from the live tables.

    The schema is migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    One connection per store, used from a single thread.
    """

    def __init__(
        self,
        db_path: str | Path = "todo.sqlite3",
        trash_dir: str | Path | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock

        if trash_dir is None:
            trash_dir = self._db_path.parent / "trash"
        self._trash = TrashBin(trash_dir, clock=clock)

        self._conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        self._conn.row_factory = sqlite3.Row
        self._configure_conn(self._conn)
        self._notes = TopicNoteStore(self._conn)
        self._ensure_schema()

        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s trash=%s total=%s", self._db_path, self._trash.directory, total)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> TaskStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ---- low-level helpers ----

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        conn.execute("PRAGMA foreign_keys=ON")
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS tasks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                done INTEGER NOT NULL DEFAULT 0,
                tags TEXT NOT NULL DEFAULT '',
                priority INTEGER NOT NULL DEFAULT 0,
                due_at REAL,
                start_at REAL,
                recurring INTEGER NOT NULL DEFAULT 0,
                recurrence_rule TEXT NOT NULL DEFAULT '',
                recurrence_interval INTEGER NOT NULL DEFAULT 0,
                notes TEXT NOT NULL DEFAULT '',
                created_at REAL NOT NULL,
                completed_at REAL
            )
            """
        )

        # Migrations (safe): add missing columns.
        cur.execute("PRAGMA table_info(tasks)")
        cols = {row["name"] for row in cur.fetchall()}

        def add_col(name: str, decl: str) -> None:
            if name in cols:
                return
            cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
            cols.add(name)
            logger.info("TaskStore migration: added column %s", name)

        add_col("tags", "TEXT NOT NULL DEFAULT ''")
        add_col("priority", "INTEGER NOT NULL DEFAULT 0")
        add_col("due_at", "REAL")
        add_col("start_at", "REAL")
        add_col("recurring", "INTEGER NOT NULL DEFAULT 0")
        add_col("recurrence_rule", "TEXT NOT NULL DEFAULT ''")
        add_col("recurrence_interval", "INTEGER NOT NULL DEFAULT 0")
        add_col("notes", "TEXT NOT NULL DEFAULT ''")
        add_col("completed_at", "REAL")

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS task_topics (
                task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                topic TEXT NOT NULL,
                PRIMARY KEY (task_id, topic)
            )
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_task_topics_topic ON task_topics(topic)")
        TopicNoteStore.ensure_schema(cur)

        # Older databases kept a single topic per task in tasks.project.
        if "project" in cols:
            cur.execute(
                """
                INSERT OR IGNORE INTO task_topics(task_id, topic)
                SELECT id, TRIM(project) FROM tasks
                WHERE project IS NOT NULL AND TRIM(project) != ''
                """
            )
            if cur.rowcount > 0:
                logger.info("TaskStore migration: copied %d legacy project topic(s)", cur.rowcount)
            cur.execute("UPDATE tasks SET project = '' WHERE project IS NOT NULL AND project != ''")

        # ... and due dates as RFC3339 text in tasks.due (read back by _from_ts).
        if "due" in cols:
            cur.execute(
                """
                UPDATE tasks SET due_at = due
                WHERE due_at IS NULL AND due IS NOT NULL AND TRIM(due) != ''
                """
            )
            if cur.rowcount > 0:
                logger.info("TaskStore migration: copied %d legacy due date(s)", cur.rowcount)
            cur.execute("UPDATE tasks SET due = NULL WHERE due IS NOT NULL")

        self._conn.commit()

    def _now(self) -> datetime:
        return self._clock()

    @staticmethod
    def _row_to_task(row: sqlite3.Row, topics: list[str] | None = None) -> Task:
        return Task(
            id=int(row["id"]),
            title=str(row["title"] or ""),
            done=bool(row["done"]),
            topics=sorted(topics or []),
            tags=str(row["tags"] or ""),
            priority=int(row["priority"] or 0),
            due=_from_ts(row["due_at"]),
            start=_from_ts(row["start_at"]),
            recurring=bool(row["recurring"]),
            recurrence_rule=str(row["recurrence_rule"] or ""),
            recurrence_interval=int(row["recurrence_interval"] or 0),
            notes=str(row["notes"] or ""),
            created_at=_from_ts(row["created_at"]) or datetime.fromtimestamp(0, tz=timezone.utc),
            completed_at=_from_ts(row["completed_at"]),
        )

    def _topics_for(self, ids: Sequence[int]) -> dict[int, list[str]]:
        out: dict[int, list[str]] = {i: [] for i in ids}
        for start in range(0, len(ids), _IN_CHUNK):
            chunk = list(ids[start : start + _IN_CHUNK])
            ph = ",".join("?" for _ in chunk)
            rows = self._conn.execute(
                f"SELECT task_id, topic FROM task_topics WHERE task_id IN ({ph}) ORDER BY topic",
                chunk,
            ).fetchall()
            for r in rows:
                out[int(r["task_id"])].append(str(r["topic"]))
        return out

    def _select_tasks(self, where: str = "", params: Iterable[Any] = ()) -> list[Task]:
        rows = self._conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM tasks {where} ORDER BY id", tuple(params)
        ).fetchall()
        topics = self._topics_for([int(r["id"]) for r in rows])
        return [self._row_to_task(r, topics[int(r["id"])]) for r in rows]

    @staticmethod
    def _replace_topics(conn: sqlite3.Connection, task_id: int, topics: Iterable[str]) -> None:
        conn.execute("DELETE FROM task_topics WHERE task_id = ?", (int(task_id),))
        conn.executemany(
            "INSERT OR IGNORE INTO task_topics(task_id, topic) VALUES (?, ?)",
            [(int(task_id), t) for t in topics],
        )

    def _insert_task(self, conn: sqlite3.Connection, task: Task) -> int:
        """Insert `task` as a new row (its id is ignored) with its topics. No commit."""
        cur = conn.execute(
            """
            INSERT INTO tasks(
                title, done, tags, priority, due_at, start_at,
                recurring, recurrence_rule, recurrence_interval, notes,
                created_at, completed_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.title,
                int(bool(task.done)),
                task.tags or "",
                clamp_priority(task.priority),
                _to_ts(task.due),
                _to_ts(task.start),
                int(bool(task.recurring)),
                task.recurrence_rule or "",
                max(0, int(task.recurrence_interval or 0)),
                task.notes or "",
                _to_ts(task.created_at) or _to_ts(self._now()),
                _to_ts(task.completed_at) if task.done else None,
            ),
        )
        rowid = cur.lastrowid
        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for tasks insert")
        # topic names may contain commas (rename_topic never splits)
        self._replace_topics(conn, rowid, sorted({t.strip() for t in task.topics if t.strip()}))
        return int(rowid)

    def _delete_rows(self, ids: Sequence[int]) -> int:
        """Remove tasks and their topic rows in one transaction."""
        n = 0
        with self._conn:
            for start in range(0, len(ids), _IN_CHUNK):
                chunk = [int(i) for i in ids[start : start + _IN_CHUNK]]
                ph = ",".join("?" for _ in chunk)
                self._conn.execute(f"DELETE FROM task_topics WHERE task_id IN ({ph})", chunk)
                cur = self._conn.execute(f"DELETE FROM tasks WHERE id IN ({ph})", chunk)
                n += cur.rowcount
        return n

    def _update(self, sql: str, params: Sequence[Any]) -> bool:
        with self._conn:
            cur = self._conn.execute(sql, tuple(params))
        return cur.rowcount > 0

    # ---- queries ----

    def count_tasks(self) -> int:
        (n,) = self._conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
        return int(n)

    def fetch_all(self) -> list[Task]:
        """All live tasks ordered by id, topics loaded in one batched query."""
        return self._select_tasks()

    def get_task(self, task_id: int) -> Task | None:
        tasks = self._select_tasks("WHERE id = ?", (int(task_id),))
        return tasks[0] if tasks else None

    def list_topics(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT topic FROM task_topics UNION SELECT topic FROM topic_notes ORDER BY topic"
        ).fetchall()
        return [str(r[0]) for r in rows]

    def topic_counts(self) -> dict[str, int]:
        rows = self._conn.execute(
            "SELECT topic, COUNT(*) AS n FROM task_topics GROUP BY topic ORDER BY topic"
        ).fetchall()
        return {str(r["topic"]): int(r["n"]) for r in rows}

    # ---- task mutation ----

    def add(self, title: str) -> int:
        with self._conn:
            cur = self._conn.execute(
                "INSERT INTO tasks(title, done, created_at) VALUES (?, 0, ?)",
                (title, _to_ts(self._now())),
            )
        rowid = cur.lastrowid
        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for tasks insert")
        logger.debug("Task added id=%s", rowid)
        return int(rowid)

    def set_done(self, task_id: int, done: bool) -> bool:
        completed = _to_ts(self._now()) if done else None
        ok = self._update(
            "UPDATE tasks SET done = ?, completed_at = ? WHERE id = ?",
            (int(bool(done)), completed, int(task_id)),
        )
        logger.debug("Task done=%s id=%s affected=%s", done, task_id, ok)
        return ok

    def update_title(self, task_id: int, title: str) -> bool:
        return self._update("UPDATE tasks SET title = ? WHERE id = ?", (title, int(task_id)))

    def update_priority(self, task_id: int, priority: int) -> bool:
        return self._update(
            "UPDATE tasks SET priority = ? WHERE id = ?", (clamp_priority(priority), int(task_id))
        )

    def update_notes(self, task_id: int, notes: str) -> bool:
        return self._update("UPDATE tasks SET notes = ? WHERE id = ?", (notes or "", int(task_id)))

    def shift_due(self, task_id: int, delta_days: int) -> datetime:
        """Move the due date by whole calendar days (local time). Unset due starts from now."""
        row = self._conn.execute("SELECT due_at FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        if row is None:
            raise TaskNotFoundError(task_id)

        base = _from_ts(row["due_at"]) or self._now()
        local = base.astimezone().replace(tzinfo=None) + timedelta(days=int(delta_days))
        new_due = local.astimezone(timezone.utc)

        self._update("UPDATE tasks SET due_at = ? WHERE id = ?", (_to_ts(new_due), int(task_id)))
        logger.debug("Task due shifted id=%s by=%sd due=%s", task_id, delta_days, new_due.isoformat())
        return new_due

    def update_metadata(
        self,
        task_id: int,
        topics_csv: str,
        tags: str,
        priority: int,
        due: datetime | None,
        start: datetime | None,
        recurring: bool,
    ) -> bool:
        """Full replace of tags/priority/dates/recurring flag and the topic set."""
        with self._conn:
            ok = self._write_metadata(task_id, topics_csv, tags, priority, due, start, recurring)
        return ok

    def _write_metadata(
        self,
        task_id: int,
        topics_csv: str,
        tags: str,
        priority: int,
        due: datetime | None,
        start: datetime | None,
        recurring: bool,
    ) -> bool:
        cur = self._conn.execute(
            """
            UPDATE tasks
            SET tags = ?, priority = ?, due_at = ?, start_at = ?, recurring = ?
            WHERE id = ?
            """,
            (
                tags or "",
                clamp_priority(priority),
                _to_ts(due),
                _to_ts(start),
                int(bool(recurring)),
                int(task_id),
            ),
        )
        if cur.rowcount == 0:
            return False
        self._replace_topics(self._conn, task_id, split_topics(topics_csv))
        return True

    def update_recurrence(self, task_id: int, rule: str, interval: int) -> bool:
        """Store rule and interval as given. The recurring flag is left alone."""
        return self._update(
            "UPDATE tasks SET recurrence_rule = ?, recurrence_interval = ? WHERE id = ?",
            ((rule or "").strip(), max(0, int(interval or 0)), int(task_id)),
        )

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
    ) -> bool:
        """
        Editor save: title, metadata, topics and recurrence in one transaction.

        Recurrence input is canonicalized so the flag and the rule agree.
        """
        norm_rule, norm_interval, recurring = recurrence.normalize_rule(rule, interval)
        with self._conn:
            if not self._write_metadata(task_id, topics_csv, tags, priority, due, start, recurring):
                return False
            self._conn.execute(
                """
                UPDATE tasks
                SET title = ?, recurrence_rule = ?, recurrence_interval = ?
                WHERE id = ?
                """,
                (title, norm_rule, norm_interval, int(task_id)),
            )
        logger.debug("Task edited id=%s rule=%s recurring=%s", task_id, norm_rule, recurring)
        return True

    # ---- delete / trash ----

    def delete(self, task_id: int) -> None:
        """Snapshot the task into the trash, then remove it. Nothing is removed if the snapshot fails."""
        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        self._trash.snapshot([task])
        self._delete_rows([task.id])
        logger.info("Task moved to trash id=%s", task.id)

    def delete_all_done(self) -> int:
        done = self._select_tasks("WHERE done = 1")
        if not done:
            return 0
        self._trash.snapshot(done)
        n = self._delete_rows([t.id for t in done])
        logger.info("Moved %d done task(s) to trash", n)
        return n

    def list_trash(self) -> list[TrashEntry]:
        return self._trash.list_entries()

    def restore_trash(self, entries: Iterable[TrashEntry]) -> list[int]:
        """Re-create trashed tasks under new ids. All or nothing."""
        return self._trash.restore(entries, self._conn, self._insert_task)

    def purge_trash(self, entries: Iterable[TrashEntry]) -> int:
        return self._trash.purge(entries)

    def trash_directory(self) -> Path:
        return self._trash.directory

    # ---- topics ----

    def rename_topic(self, old: str, new: str) -> int:
        """
        Re-point every association from `old` to `new` and merge their notes.

        Returns the number of associations moved.
        """
        old, new = (old or "").strip(), (new or "").strip()
        if not new:
            raise ValueError("new topic name is required")
        if old == new:
            return 0

        with self._conn:
            self._conn.execute(
                """
                INSERT OR IGNORE INTO task_topics(task_id, topic)
                SELECT task_id, ? FROM task_topics WHERE topic = ?
                """,
                (new, old),
            )
            cur = self._conn.execute("DELETE FROM task_topics WHERE topic = ?", (old,))
            n = cur.rowcount
            self._notes.rename(old, new, commit=False)

        logger.info("Topic renamed %r -> %r tasks=%d", old, new, n)
        return n

    def delete_topic(self, name: str) -> int:
        """Drop the topic from every task (tasks stay) and delete its note."""
        name = (name or "").strip()
        with self._conn:
            cur = self._conn.execute("DELETE FROM task_topics WHERE topic = ?", (name,))
            n = cur.rowcount
            self._notes.delete(name, commit=False)
        logger.info("Topic deleted %r tasks=%d", name, n)
        return n

    def topic_note(self, topic: str) -> str:
        return self._notes.get(topic)

    def set_topic_note(self, topic: str, body: str) -> None:
        self._notes.set(topic, body)

    def delete_topic_note(self, topic: str) -> None:
        self._notes.delete(topic)

    # ---- recurrence ----

    @staticmethod
    def parse_recurrence_rule(raw: str) -> RecurrenceSpec | None:
        return recurrence.parse_rule(raw)

    @staticmethod
    def next_occurrence(task: Task, now: date | datetime | None = None) -> date | None:
        return recurrence.next_occurrence(task, now)
