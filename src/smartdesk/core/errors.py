# src/smartdesk/core/errors.py

"""Exception taxonomy shared by the task engine."""

from __future__ import annotations


class SmartDeskError(Exception):
    """Base class for all errors raised by smartdesk."""


class ValidationError(SmartDeskError, ValueError):
    """
    Malformed input rejected before any I/O.

    Examples: blank title, due date before start date, non-positive snooze,
    scan interval below the one-minute floor.
    """


class PersistenceError(SmartDeskError, RuntimeError):
    """The task repository failed a read or write."""
