# src/todo_ledger/connectors/console_connector.py

from __future__ import annotations

import logging
import sqlite3

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

PROMPT = "todo> "


def handle_line(state: AppState, line: str) -> str | None:
    """
    One console line -> reply text.

    Plain text (no leading slash) is a shortcut for /add.
    Errors are logged and turned into a short message; the loop keeps running.
    """
    line = line.strip()
    if not line:
        return None
    if not line.startswith("/"):
        line = "/add " + line

    try:
        return command_registry.handle(state, line)
    except (OSError, sqlite3.Error) as e:
        logger.exception("Storage error while handling %r", line)
        return f"Storage error: {e}"
    except Exception:
        logger.exception("Command handler crashed.")
        return "Internal error while handling a command."


def run_console_loop(state: AppState) -> None:
    logger.info("Console started db=%s", getattr(state.settings, "db_path", "?"))
    print("Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = input(PROMPT).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if user_input.lower() in ("/exit", "/quit", "/q"):
            logger.info("Console exit command received.")
            break

        reply = handle_line(state, user_input)
        if reply is not None:
            print(reply)

    logger.info("Console finished.")
