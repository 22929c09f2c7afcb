# src/smartdesk/core/clock.py

from __future__ import annotations

from datetime import datetime


class SystemClock:
    """Wall-clock time source (naive local time, like the stored timestamps)."""

    def now(self) -> datetime:
        return datetime.now()
