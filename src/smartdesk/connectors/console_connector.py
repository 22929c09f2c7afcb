# src/smartdesk/connectors/console_connector.py

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta

from ..cli.commands import format_remaining, format_task
from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

_print_lock = threading.Lock()


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    with _print_lock:
        print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleReminderListener:
    """Prints reminders as they fire (called from the scheduler thread)."""

    def __call__(self, task: Task, remaining: timedelta) -> None:
        _print_ts(f"[REMINDER] {format_task(task)} is due {format_remaining(remaining)}.")


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    listener = ConsoleReminderListener()
    state.reminders.add_listener(listener)

    try:
        while True:
            try:
                user_input = input(">>> ").strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            if not user_input.startswith("/"):
                _print_ts("Commands start with '/'. Use /help to list them.")
                continue

            try:
                response = command_registry.handle(state, user_input)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is not None:
                _print_ts(response)
    finally:
        state.reminders.remove_listener(listener)

    logger.info("Console connector finished.")
