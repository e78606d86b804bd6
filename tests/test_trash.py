# tests/test_trash.py

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path

import pytest

from todo_ledger.tasks.task_models import Task, TaskNotFoundError
from todo_ledger.tasks.task_store import TaskStore
from todo_ledger.tasks.trash import TrashBin, slugify

from .fakes import FakeClock


def _files(store: TaskStore) -> list[Path]:
    d = store.trash_directory()
    return sorted(d.glob("*.json")) if d.is_dir() else []


def test_slugify() -> None:
    assert slugify("Buy Milk & eggs!") == "buy-milk--eggs"
    assert slugify("   ") == "task"
    assert slugify("Ünïcode only") == "ncode-only"
    assert len(slugify("x" * 200)) == 48


def test_delete_writes_snapshot_then_removes_row(store: TaskStore) -> None:
    task_id = store.add("Buy milk")
    store.update_metadata(task_id, "errands", "", 2, None, None, False)

    store.delete(task_id)

    assert store.get_task(task_id) is None
    assert store.topic_counts() == {}
    (path,) = _files(store)
    assert re.fullmatch(rf"\d{{8}}T\d{{6}}Z-{task_id}-0-buy-milk\.json", path.name)

    payload = json.loads(path.read_text("utf-8"))
    assert payload["deleted_at"] == "2024-06-10T12:00:00Z"
    assert payload["task"]["title"] == "Buy milk"
    assert payload["task"]["topics"] == ["errands"]
    assert payload["task"]["priority"] == 2


def test_delete_missing_task_raises(store: TaskStore) -> None:
    with pytest.raises(TaskNotFoundError):
        store.delete(42)
    assert _files(store) == []


def test_restore_round_trip_assigns_new_id(store: TaskStore) -> None:
    task_id = store.add("Pay rent")
    store.edit_task(
        task_id,
        title="Pay rent",
        topics_csv="home,money",
        tags="monthly",
        priority=4,
        due=datetime(2024, 7, 1, 9, 0),
        rule="monthly",
    )
    store.update_notes(task_id, "transfer before noon")
    store.set_done(task_id, True)
    before = store.get_task(task_id)

    store.delete(task_id)
    (entry,) = store.list_trash()
    assert entry.task.title == "Pay rent"

    (new_id,) = store.restore_trash([entry])
    assert new_id != task_id
    assert not entry.path.exists()
    assert store.list_trash() == []

    after = store.get_task(new_id)
    assert after is not None
    for name in (
        "title",
        "done",
        "topics",
        "tags",
        "priority",
        "due",
        "start",
        "recurring",
        "recurrence_rule",
        "recurrence_interval",
        "notes",
        "created_at",
        "completed_at",
    ):
        assert getattr(after, name) == getattr(before, name), name


def test_restore_failure_inserts_nothing_and_keeps_files(store: TaskStore, monkeypatch) -> None:
    a = store.add("a")
    b = store.add("b")
    store.delete(a)
    store.delete(b)
    entries = store.list_trash()
    assert len(entries) == 2

    real_insert = store._insert_task
    calls = {"n": 0}

    def flaky_insert(conn, task: Task) -> int:
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("disk on fire")
        return real_insert(conn, task)

    monkeypatch.setattr(store, "_insert_task", flaky_insert)

    with pytest.raises(RuntimeError):
        store.restore_trash(entries)

    assert store.count_tasks() == 0
    assert all(e.path.exists() for e in entries)


def test_delete_all_done_moves_only_done_tasks(store: TaskStore) -> None:
    keep = store.add("keep")
    d1 = store.add("done one")
    d2 = store.add("done two")
    store.set_done(d1, True)
    store.set_done(d2, True)

    assert store.delete_all_done() == 2
    assert [t.id for t in store.fetch_all()] == [keep]
    names = [p.name for p in _files(store)]
    assert len(names) == 2
    assert any(f"-{d1}-0-" in n for n in names)
    assert any(f"-{d2}-1-" in n for n in names)

    assert store.delete_all_done() == 0


def test_delete_all_done_is_atomic_when_snapshot_fails(store: TaskStore, monkeypatch) -> None:
    ids = [store.add(f"t{i}") for i in range(3)]
    for i in ids:
        store.set_done(i, True)

    trash = store._trash
    real_write = trash._write_file
    calls = {"n": 0}

    def failing_write(path: Path, data: str) -> Path:
        calls["n"] += 1
        if calls["n"] == 2:
            raise OSError("no space left on device")
        return real_write(path, data)

    monkeypatch.setattr(trash, "_write_file", failing_write)

    with pytest.raises(OSError):
        store.delete_all_done()

    assert [t.id for t in store.fetch_all()] == ids


def test_list_trash_sorted_newest_first(store: TaskStore, clock: FakeClock) -> None:
    first = store.add("first")
    second = store.add("second")
    store.delete(first)
    clock.advance(minutes=5)
    store.delete(second)

    entries = store.list_trash()
    assert [e.task.title for e in entries] == ["second", "first"]
    assert entries[0].deleted_at > entries[1].deleted_at


def test_list_trash_skips_foreign_and_corrupt_files(store: TaskStore) -> None:
    store.delete(store.add("real"))
    d = store.trash_directory()
    (d / "broken.json").write_text("{not json", "utf-8")
    (d / "wrong-shape.json").write_text(json.dumps({"foo": 1}), "utf-8")
    (d / "list.json").write_text("[]", "utf-8")
    (d / "bad-task.json").write_text(
        json.dumps({"deleted_at": "2024-01-01T00:00:00Z", "task": {"title": 5}}), "utf-8"
    )
    (d / "README.txt").write_text("hello", "utf-8")
    (d / "nested.json").mkdir()

    entries = store.list_trash()
    assert [e.task.title for e in entries] == ["real"]


def test_list_trash_missing_directory_is_empty(tmp_path: Path) -> None:
    assert TrashBin(tmp_path / "nope").list_entries() == []


def test_purge_is_idempotent(store: TaskStore) -> None:
    store.delete(store.add("gone"))
    entries = store.list_trash()

    assert store.purge_trash(entries) == 1
    assert _files(store) == []
    # second purge of the same (now missing) files does not fail
    assert store.purge_trash(entries) == 1
    assert store.list_trash() == []


def test_snapshot_name_clash_gets_suffix(tmp_path: Path) -> None:
    bin_ = TrashBin(tmp_path / "trash", clock=FakeClock())
    task = Task(id=7, title="Same", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))

    p1 = bin_.snapshot([task])[0]
    p2 = bin_.snapshot([task])[0]
    assert p1 != p2
    assert p2.name == p1.stem + "-1.json"
    assert len(bin_.list_entries()) == 2


def test_snapshot_uses_explicit_deleted_at(tmp_path: Path) -> None:
    bin_ = TrashBin(tmp_path / "trash")
    when = datetime(2023, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    (path,) = bin_.snapshot([Task(id=1, title="x")], deleted_at=when)
    assert path.name.startswith("20230304T050607Z-1-0-")
    assert bin_.list_entries()[0].deleted_at == when


def test_restoring_the_same_listing_twice_inserts_once(store: TaskStore) -> None:
    store.delete(store.add("once"))
    entries = store.list_trash()

    first = store.restore_trash(entries)
    second = store.restore_trash(entries)

    assert len(first) == 1
    assert second == []
    assert [t.title for t in store.fetch_all()] == ["once"]


def test_restore_skips_purged_and_repeated_entries(store: TaskStore) -> None:
    store.delete(store.add("kept"))
    store.delete(store.add("purged"))
    entries = {e.task.title: e for e in store.list_trash()}
    store.purge_trash([entries["purged"]])

    new_ids = store.restore_trash([entries["kept"], entries["purged"], entries["kept"]])

    assert len(new_ids) == 1
    assert [t.title for t in store.fetch_all()] == ["kept"]


def test_restore_keeps_topic_names_with_commas(store: TaskStore) -> None:
    task_id = store.add("x")
    store.update_metadata(task_id, "a", "", 0, None, None, False)
    store.rename_topic("a", "a,b")
    assert store.get_task(task_id).topics == ["a,b"]

    store.delete(task_id)
    (new_id,) = store.restore_trash(store.list_trash())

    assert store.get_task(new_id).topics == ["a,b"]
