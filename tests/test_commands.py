# tests/test_commands.py

from __future__ import annotations

from todo_ledger.cli.commands import CommandRegistry, registry
from todo_ledger.connectors.console_connector import handle_line


def test_command_registry_routes_and_aliases(state) -> None:
    reg = CommandRegistry()
    seen: list[list[str]] = []

    def h(state, args):
        seen.append(args)
        return "ok"

    reg.register("go", h, "go somewhere", aliases=["g"])

    assert reg.handle(state, '/go "two words" x') == "ok"
    assert reg.handle(state, "/G y") == "ok"
    assert seen == [["two words", "x"], ["y"]]
    assert "/go - go somewhere" in reg.build_help()


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_plain_text_adds_a_task(state) -> None:
    reply = handle_line(state, "Buy milk")
    assert reply == "Added #1: Buy milk"
    assert [t.title for t in state.store.fetch_all()] == ["Buy milk"]
    assert handle_line(state, "   ") is None


def test_done_undo_and_list_filters(state) -> None:
    registry.handle(state, "/add one")
    registry.handle(state, "/add two")

    assert registry.handle(state, "/done 1") == "#1 marked done."
    out = registry.handle(state, "/list open")
    assert "#2 two" in out and "#1 one" not in out
    assert state.filter_mode == "open"

    assert registry.handle(state, "/undo #1") == "#1 marked open."
    assert registry.handle(state, "/done 9") == "No such task: #9."
    assert "Unknown /list option" in registry.handle(state, "/list sideways")


def test_missing_task_error_becomes_reply(state) -> None:
    assert registry.handle(state, "/due 5 +1") == "No such task: #5."
    assert registry.handle(state, "/rm 5") == "No such task: #5."


def test_meta_edits_fields_and_normalizes_rule(state) -> None:
    registry.handle(state, "/add Water plants")
    reply = registry.handle(
        state, "/meta 1 topics=home,garden prio=9 due=2024-07-01 'recur=every 2 weeks on friday'"
    )
    assert reply.startswith("Saved:")

    t = state.store.get_task(1)
    assert t.topics == ["garden", "home"]
    assert t.priority == 5
    assert t.recurrence_rule == "every 2 weeks on Fri"
    assert t.recurring is True

    assert "Due date invalid" in registry.handle(state, "/meta 1 due=tomorrow")
    assert "Unknown field" in registry.handle(state, "/meta 1 colour=red")


def test_recur_free_text_and_clear(state) -> None:
    registry.handle(state, "/add Haircut")
    assert "free text" in registry.handle(state, "/recur 1 whenever it gets long")
    assert state.store.get_task(1).recurring is True

    assert registry.handle(state, "/recur 1 none") == "#1 recurrence: none"
    assert state.store.get_task(1).recurring is False


def test_topic_rename_and_notes(state) -> None:
    registry.handle(state, "/add a")
    registry.handle(state, "/meta 1 topics=old")
    registry.handle(state, "/note old remember this")

    assert registry.handle(state, "/topic rename old new") == "Renamed 'old' -> 'new' on 1 task(s)."
    assert registry.handle(state, "/note new") == "remember this"
    assert "new [1] (note)" in registry.handle(state, "/topics")

    registry.handle(state, "/note new -")
    assert registry.handle(state, "/note new") == "No note for 'new'."

    assert registry.handle(state, "/topic rm new") == "Removed topic 'new' from 1 task(s)."
    assert state.store.count_tasks() == 1


def test_trash_list_restore_purge(state) -> None:
    registry.handle(state, "/add first")
    registry.handle(state, "/add second")
    registry.handle(state, "/rm 1")
    registry.handle(state, "/rm 2")

    assert "Nothing selected" in registry.handle(state, "/trash restore 1")

    listing = registry.handle(state, "/trash")
    assert listing.startswith("Trash (2):")
    assert len(state.last_trash) == 2

    reply = registry.handle(state, "/trash restore 1")
    assert reply.startswith("Restored 1 task(s): #")
    assert state.store.count_tasks() == 1

    registry.handle(state, "/trash")
    assert registry.handle(state, "/trash purge all") == "Purged 1 trash entry."
    assert "Trash is empty" in registry.handle(state, "/trash")


def test_clear_moves_done_tasks(state) -> None:
    registry.handle(state, "/add a")
    registry.handle(state, "/add b")
    registry.handle(state, "/done 2")
    assert registry.handle(state, "/clear") == "Moved 1 done task(s) to trash."
    assert [t.id for t in state.store.fetch_all()] == [1]


def test_prio_find_show_report(state) -> None:
    registry.handle(state, "/add Pay rent")
    registry.handle(state, "/prio 1 +")
    registry.handle(state, "/prio 1 +")
    assert state.store.get_task(1).priority == 2
    assert "must be a number" in registry.handle(state, "/prio 1 high")

    assert "#1 Pay rent" in registry.handle(state, "/find rent")
    assert "Nothing matches" in registry.handle(state, "/find xyz")

    registry.handle(state, "/notes 1 before noon")
    shown = registry.handle(state, "/show 1")
    assert "priority:  2" in shown
    assert shown.rstrip().endswith("before noon")

    assert "Recently Added (1)" in registry.handle(state, "/report")


def test_storage_errors_are_reported_not_raised(state, monkeypatch) -> None:
    def boom(title):
        raise OSError("read-only file system")

    monkeypatch.setattr(state.store, "add", boom)
    assert handle_line(state, "/add x") == "Storage error: read-only file system"
