# src/smartdesk/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

SCHEDULER_LOGGER = "smartdesk.tasks.reminder_scheduler"
STORE_LOGGER = "smartdesk.tasks.task_store"

# Minimum console level per smartdesk logger prefix; anything else under smartdesk passes.
_CONSOLE_MIN_LEVELS: dict[str, int] = {
    # Background thread: scan summaries would interleave with the prompt.
    SCHEDULER_LOGGER: logging.WARNING,
    # Schema/migration chatter and per-row debug lines belong in the file only.
    STORE_LOGGER: logging.WARNING,
}


def parse_level(name: str | None, default: int = logging.INFO) -> int:
    """Map a level name from settings ("debug", "WARNING") to a logging level."""
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


class _ConsoleNoiseFilter(logging.Filter):
    """
    Make the interactive console usable:
    - smartdesk logs pass, except the scheduler and store loggers below WARNING
    - Python warnings (captured as 'py.warnings') and third-party noise only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("smartdesk."):
            for prefix, level in _CONSOLE_MIN_LEVELS.items():
                if name.startswith(prefix):
                    return record.levelno >= level
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/smartdesk",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Configure logging with:
    - Console handler: filtered for the REPL
    - smartdesk.log: everything at file_level
    - reminders.log: scheduler activity only (fired reminders, failing listeners, overruns)

    Call this ONCE, before the first task is loaded. Returns the main log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "smartdesk.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s [%(threadName)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    rh = logging.FileHandler(str(log_dir / "reminders.log"), encoding="utf-8")
    rh.setLevel(logging.INFO)
    rh.setFormatter(fmt)
    rh.addFilter(logging.Filter(SCHEDULER_LOGGER))
    root.addHandler(rh)

    logging.captureWarnings(True)
    return log_file
