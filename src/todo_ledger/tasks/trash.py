# src/todo_ledger/tasks/trash.py

from __future__ import annotations

import json
import logging
import re
import sqlite3
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path

from .task_models import Task, TrashEntry, from_rfc3339, to_rfc3339, utc_now

logger = logging.getLogger(__name__)

_SLUG_DROP_RE = re.compile(r"[^a-z0-9_-]")
_SLUG_MAX = 48
_STAMP_FORMAT = "%Y%m%dT%H%M%SZ"

InsertTask = Callable[[sqlite3.Connection, Task], int]


def slugify(title: str) -> str:
    slug = _SLUG_DROP_RE.sub("", (title or "").strip().lower().replace(" ", "-"))
    return slug[:_SLUG_MAX] or "task"


class TrashBin:
    """
    Directory of JSON snapshots, one file per deleted task.

    Layout:
      <dir>/<YYYYmmddTHHMMSSZ>-<task id>-<batch index>-<slug>.json
      <dir>/<same name>-<N>.json when that name is already taken
      {"deleted_at": "<RFC3339>", "task": {...}}

    Snapshots are immutable once written. Restore consumes them, purge deletes them.
    """

    def __init__(
        self,
        directory: str | Path = "trash",
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._dir = Path(directory).expanduser().absolute()
        self._clock = clock

    @property
    def directory(self) -> Path:
        return self._dir

    # ---- writing ----

    def _write_file(self, path: Path, data: str) -> Path:
        """Create `path` exclusively; on a name clash pick the next free suffix."""
        candidate = path
        n = 0
        while True:
            try:
                with open(candidate, "x", encoding="utf-8") as f:
                    f.write(data)
                return candidate
            except FileExistsError:
                n += 1
                candidate = path.with_name(f"{path.stem}-{n}{path.suffix}")

    def snapshot(self, tasks: Sequence[Task], deleted_at: datetime | None = None) -> list[Path]:
        """
        Write one snapshot per task.

        Any failure propagates. Files already written in this batch stay on disk,
        the caller must not delete rows when this raises.
        """
        if not tasks:
            return []
        self._dir.mkdir(parents=True, exist_ok=True)

        when = (deleted_at or self._clock()).astimezone(timezone.utc)
        stamp = when.strftime(_STAMP_FORMAT)

        written: list[Path] = []
        for i, task in enumerate(tasks):
            payload = {"deleted_at": to_rfc3339(when), "task": task.to_dict()}
            data = json.dumps(payload, ensure_ascii=False, indent=2)
            name = f"{stamp}-{task.id}-{i}-{slugify(task.title)}.json"
            written.append(self._write_file(self._dir / name, data))

        logger.debug("Trash snapshot wrote %d file(s) to %s", len(written), self._dir)
        return written

    # ---- reading ----

    @staticmethod
    def _read_entry(path: Path) -> TrashEntry:
        payload = json.loads(path.read_text("utf-8"))
        if not isinstance(payload, dict):
            raise TypeError("snapshot must be an object")
        deleted_at = from_rfc3339(payload["deleted_at"])
        if deleted_at is None:
            raise ValueError("snapshot has no deleted_at")
        return TrashEntry(path=path, deleted_at=deleted_at, task=Task.from_dict(payload["task"]))

    def list_entries(self) -> list[TrashEntry]:
        """All readable snapshots, most recently deleted first. Foreign or corrupt files are skipped."""
        if not self._dir.is_dir():
            return []

        entries: list[TrashEntry] = []
        for path in self._dir.iterdir():
            if not path.is_file() or path.suffix != ".json":
                continue
            try:
                entries.append(self._read_entry(path))
            except (OSError, ValueError, TypeError, KeyError) as e:
                logger.debug("Skipping unreadable trash file %s: %s", path, e)

        entries.sort(key=lambda e: e.deleted_at, reverse=True)
        return entries

    # ---- consuming ----

    def restore(
        self,
        entries: Iterable[TrashEntry],
        conn: sqlite3.Connection,
        insert_task: InsertTask,
    ) -> list[int]:
        """
        Re-insert every snapshot as a new task row inside one transaction.

        Snapshot files are removed only after the transaction committed.
        On failure nothing is inserted and every file stays in place.
        Entries whose file is already gone are skipped, so a repeated restore inserts nothing.
        """
        entries = list(entries)
        if not entries:
            return []

        new_ids: list[int] = []
        restored: list[TrashEntry] = []
        seen: set[Path] = set()
        with conn:
            for e in entries:
                path = Path(e.path)
                # already restored or purged (stale listing, another session)
                if path in seen or not path.is_file():
                    logger.debug("Skipping consumed trash entry %s", path)
                    continue
                seen.add(path)
                new_ids.append(insert_task(conn, e.task))
                restored.append(e)

        for e in restored:
            Path(e.path).unlink(missing_ok=True)

        logger.info("Restored %d task(s) from trash ids=%s", len(new_ids), new_ids)
        return new_ids

    def purge(self, entries: Iterable[TrashEntry]) -> int:
        """Delete snapshot files for good. Already-missing files are fine."""
        n = 0
        for e in entries:
            Path(e.path).unlink(missing_ok=True)
            n += 1
        logger.info("Purged %d trash entr%s", n, "y" if n == 1 else "ies")
        return n
