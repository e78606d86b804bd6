# tests/test_topic_notes.py

from __future__ import annotations

import sqlite3

import pytest

from todo_ledger.tasks.topic_notes import NOTE_SEPARATOR, TopicNoteStore, merge_notes


@pytest.fixture()
def notes() -> TopicNoteStore:
    conn = sqlite3.connect(":memory:")
    TopicNoteStore.ensure_schema(conn.cursor())
    yield TopicNoteStore(conn)
    conn.close()


def test_merge_notes() -> None:
    assert merge_notes("B", "A") == f"B{NOTE_SEPARATOR}A"
    assert merge_notes("", "A") == "A"
    assert merge_notes("B", "  ") == "B"
    assert merge_notes("", "") == ""


def test_set_trims_topic_and_upserts(notes: TopicNoteStore) -> None:
    notes.set(" home ", "first")
    notes.set("home", "second")
    assert notes.get("home") == "second"
    assert notes.list_topics() == ["home"]


def test_blank_body_deletes(notes: TopicNoteStore) -> None:
    notes.set("home", "x")
    notes.set("home", "\n  ")
    assert notes.get("home") == ""
    assert notes.list_topics() == []


def test_empty_topic_rejected(notes: TopicNoteStore) -> None:
    with pytest.raises(ValueError):
        notes.set("   ", "body")


def test_delete_reports_whether_a_row_went_away(notes: TopicNoteStore) -> None:
    notes.set("a", "x")
    assert notes.delete("a") is True
    assert notes.delete("a") is False


def test_rename_merges_into_existing(notes: TopicNoteStore) -> None:
    notes.set("old", "A")
    notes.set("new", "B")
    notes.rename("old", "new")
    assert notes.get("new") == "B\n\n---\n\nA"
    assert notes.list_topics() == ["new"]


def test_rename_without_note_is_noop(notes: TopicNoteStore) -> None:
    notes.set("new", "B")
    notes.rename("missing", "new")
    assert notes.get("new") == "B"
