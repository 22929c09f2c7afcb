# src/smartdesk/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the reminder scheduler (optional),
then runs the console REPL in the main thread.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import parse_level, setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    # TaskStore uses short-lived sqlite connections per call; no explicit close required.
    try:
        state.reminders.close()
    except Exception:
        logger.exception("Reminder scheduler close failed.")


def main() -> None:
    settings = get_settings()

    console_level = parse_level(getattr(settings, "log_level", "INFO"))
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)

    if settings.reminders_enabled:
        state.reminders.start()
    else:
        logger.info("Reminders disabled by settings; scheduler not started.")

    try:
        if settings.console_enabled:
            # Ctrl+C reaches input() as KeyboardInterrupt; the console handles it.
            run_console_loop(state)
        else:
            # Use an Event so main can wait without a busy while-loop.
            stop_main = threading.Event()

            def _handle_signal(signum, _frame) -> None:
                logger.info("Signal %s received, shutting down...", signum)
                stop_main.set()

            try:
                signal.signal(signal.SIGINT, _handle_signal)
                signal.signal(signal.SIGTERM, _handle_signal)
            except (ValueError, OSError, AttributeError):
                # Not in the main thread, or the platform lacks SIGTERM.
                pass

            logger.info("Console disabled. Running reminders only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
