# src/todo_ledger/tasks/topic_notes.py

from __future__ import annotations

import logging
import sqlite3
import time

logger = logging.getLogger(__name__)

NOTE_SEPARATOR = "\n\n---\n\n"


def merge_notes(target: str, incoming: str) -> str:
    """Note kept under the surviving topic when `incoming`'s topic is folded into `target`'s."""
    target = target or ""
    incoming = incoming or ""
    if not incoming.strip():
        return target
    if not target.strip():
        return incoming
    return f"{target}{NOTE_SEPARATOR}{incoming}"


class TopicNoteStore:
    """
    Free-text notes keyed by topic name (`topic_notes` table).

    Shares the owning TaskStore's connection. Methods do not commit on their
    own when called with `commit=False`, so the repository can fold them into a
    larger transaction (topic rename/delete).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @staticmethod
    def ensure_schema(cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS topic_notes (
                topic TEXT PRIMARY KEY,
                body TEXT NOT NULL DEFAULT '',
                updated_at REAL NOT NULL DEFAULT 0
            )
            """
        )

    def get(self, topic: str) -> str:
        row = self._conn.execute(
            "SELECT body FROM topic_notes WHERE topic = ?", (topic.strip(),)
        ).fetchone()
        return str(row[0] or "") if row else ""

    def set(self, topic: str, body: str, *, commit: bool = True) -> None:
        """Upsert; a blank body removes the note."""
        topic = topic.strip()
        if not topic:
            raise ValueError("topic is required")
        if not (body or "").strip():
            self.delete(topic, commit=commit)
            return

        self._conn.execute(
            """
            INSERT INTO topic_notes(topic, body, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(topic) DO UPDATE SET body = excluded.body, updated_at = excluded.updated_at
            """,
            (topic, body, time.time()),
        )
        if commit:
            self._conn.commit()
        logger.debug("Topic note saved topic=%s len=%d", topic, len(body))

    def delete(self, topic: str, *, commit: bool = True) -> bool:
        cur = self._conn.execute("DELETE FROM topic_notes WHERE topic = ?", (topic.strip(),))
        if commit:
            self._conn.commit()
        return cur.rowcount > 0

    def rename(self, old: str, new: str, *, commit: bool = True) -> None:
        """Move `old`'s note under `new`, appending it after `new`'s own note if both exist."""
        old, new = old.strip(), new.strip()
        if old == new:
            return
        old_body = self.get(old)
        if old_body:
            self.set(new, merge_notes(self.get(new), old_body), commit=False)
        self.delete(old, commit=False)
        if commit:
            self._conn.commit()

    def list_topics(self) -> list[str]:
        rows = self._conn.execute("SELECT topic FROM topic_notes ORDER BY topic").fetchall()
        return [str(r[0]) for r in rows]
