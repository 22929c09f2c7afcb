# src/smartdesk/cli/commands.py

from __future__ import annotations

import logging
import re
import shlex
from collections.abc import Callable
from datetime import date, datetime, timedelta

from ..core.errors import SmartDeskError, ValidationError
from ..core.state import AppState
from ..tasks.task_board import TaskLane
from ..tasks.task_models import Task, TaskPriority, TaskStatus, TaskType

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)

_RELATIVE_RE = re.compile(r"^\+(\d+)([mhd])$")
_UNITS = {"m": "minutes", "h": "hours", "d": "days"}


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            return "Unbalanced quotes in command."
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args)
        except ValidationError as e:
            return f"Invalid input: {e}"
        except SmartDeskError as e:
            logger.warning("Command /%s failed: %s", name, e)
            return f"Command failed: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument parsing ----


def split_options(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """Separate `key=value` tokens from positional words."""
    words: list[str] = []
    opts: dict[str, str] = {}
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key and key.isidentifier():
            opts[key.lower()] = value
        else:
            words.append(a)
    return words, opts


def parse_when(raw: str, now: datetime) -> datetime:
    """
    ISO date/datetime ("2026-10-18", "2026-10-18T09:30") or relative ("+30m", "+2h", "+1d").

    A value with a UTC offset is converted to naive local time.
    """
    raw = raw.strip()
    m = _RELATIVE_RE.match(raw)
    if m:
        return now + timedelta(**{_UNITS[m.group(2)]: int(m.group(1))})
    try:
        value = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"cannot parse date/time {raw!r}") from None
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def parse_day(raw: str) -> date:
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        raise ValidationError(f"cannot parse date {raw!r}") from None


def parse_task_id(args: list[str]) -> int:
    if not args or not args[0].isdigit():
        raise ValidationError("task id expected")
    return int(args[0])


def parse_enum(enum_cls, raw: str):
    try:
        return enum_cls[raw.strip().upper()]
    except KeyError:
        allowed = ", ".join(e.name.lower() for e in enum_cls)
        raise ValidationError(f"unknown value {raw!r} (allowed: {allowed})") from None


def format_task(task: Task) -> str:
    due = task.due_at.strftime("%Y-%m-%d %H:%M") if task.due_at else "-"
    bell = f" [remind {task.reminder_lead_minutes}m]" if task.reminder_enabled else ""
    return (
        f"#{task.id} {task.title} (due {due}, {task.priority.name.lower()}, "
        f"{task.kind.name.lower()}, {task.status.name.lower()}){bell}"
    )


def format_remaining(remaining: timedelta) -> str:
    minutes = int(remaining.total_seconds() // 60)
    if minutes <= 0:
        return "now"
    if minutes < 60:
        return f"in {minutes} min"
    hours, minutes = divmod(minutes, 60)
    return f"in {hours} h {minutes} min"


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    sched = state.reminders
    return (
        "Status:\n"
        f"  Tasks stored: {state.task_store.count_tasks()}\n"
        f"  Reminder scheduler: {sched.state.value} (every {sched.scan_interval})\n"
        f"  Dashboard look-ahead: {state.upcoming_days} days"
    )


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title> [due=...] [start=...] [priority=...] [type=...] [remind=<minutes>] [note=...]
    """
    words, opts = split_options(args)
    title = " ".join(words).strip()
    if not title:
        return "Usage: /add <title> [due=+1h|2026-10-18T09:00] [priority=high] [type=course] [remind=15]"

    now = state.clock.now()
    task = Task(
        title=title,
        description=opts.get("note"),
        start_at=parse_when(opts["start"], now) if "start" in opts else None,
        due_at=parse_when(opts["due"], now) if "due" in opts else None,
        priority=TaskPriority.parse(opts["priority"]) if "priority" in opts else TaskPriority.NORMAL,
        kind=parse_enum(TaskType, opts["type"]) if "type" in opts else TaskType.TODO,
    )
    if "remind" in opts:
        lead = opts["remind"].strip()
        if not lead.isdigit():
            raise ValidationError("remind expects a number of minutes")
        task = task.evolve(reminder_enabled=True, reminder_lead_minutes=int(lead))

    created = state.tasks.create_task(task)
    return f"Created {format_task(created)}"


def cmd_list(state: AppState, args: list[str]) -> str:
    """/list [type=...] [status=...] [min=...] [from=YYYY-MM-DD] [to=YYYY-MM-DD]"""
    _, opts = split_options(args)
    tasks = state.tasks.filter_tasks(
        kind=parse_enum(TaskType, opts["type"]) if "type" in opts else None,
        status=parse_enum(TaskStatus, opts["status"]) if "status" in opts else None,
        minimum_priority=TaskPriority.parse(opts["min"]) if "min" in opts else None,
        date_from=parse_day(opts["from"]) if "from" in opts else None,
        date_to=parse_day(opts["to"]) if "to" in opts else None,
    )
    if not tasks:
        return "No tasks."
    return "\n".join(format_task(t) for t in tasks)


def cmd_board(state: AppState, args: list[str]) -> str:
    """/board [days] -> dashboard lanes for today"""
    days = state.upcoming_days
    if args:
        if not args[0].isdigit():
            return "Usage: /board [days]"
        days = int(args[0])

    today = state.clock.now().date()
    lines = [f"Board for {today.isoformat()} (upcoming {days} days):"]
    for column in state.tasks.build_board(today, days):
        if column.lane == TaskLane.COMPLETED:
            header = f"{column.title} ({column.total_count})"
        else:
            header = f"{column.title} ({column.active_count} open, {column.completion_ratio:.0%} done)"
        lines.append(f"[{header}]")
        for t in column.tasks:
            lines.append(f"  {format_task(t)}")
    return "\n".join(lines)


def cmd_start(state: AppState, args: list[str]) -> str:
    task = state.tasks.start_task(parse_task_id(args))
    return f"Started {format_task(task)}" if task else "No such task."


def cmd_done(state: AppState, args: list[str]) -> str:
    task = state.tasks.mark_task_completed(parse_task_id(args))
    return f"Completed {format_task(task)}" if task else "No such task."


def cmd_snooze(state: AppState, args: list[str]) -> str:
    """/snooze <id> <minutes>"""
    task_id = parse_task_id(args)
    if len(args) < 2 or not args[1].isdigit():
        return "Usage: /snooze <id> <minutes>"
    task = state.tasks.snooze_task(task_id, timedelta(minutes=int(args[1])))
    return f"Snoozed {format_task(task)}" if task else "No such task."


def cmd_remind(state: AppState, args: list[str]) -> str:
    """/remind <id> on|off [minutes]"""
    task_id = parse_task_id(args)
    if len(args) < 2 or args[1].lower() not in ("on", "off"):
        return "Usage: /remind <id> on|off [minutes]"
    lead = None
    if len(args) >= 3:
        if not args[2].isdigit():
            return "Usage: /remind <id> on|off [minutes]"
        lead = int(args[2])
    task = state.tasks.set_reminder(task_id, args[1].lower() == "on", lead)
    return f"Updated {format_task(task)}" if task else "No such task."


def cmd_delete(state: AppState, args: list[str]) -> str:
    task_id = parse_task_id(args)
    return f"Deleted task #{task_id}." if state.tasks.delete_task(task_id) else "No such task."


def cmd_interval(state: AppState, args: list[str]) -> str:
    """/interval <minutes> -> reminder scan interval (minimum 1)"""
    if not args or not args[0].isdigit():
        return f"Reminder scan interval: {state.reminders.scan_interval}. Usage: /interval <minutes>"
    state.reminders.set_scan_interval(timedelta(minutes=int(args[0])))
    return f"Reminder scan interval set to {state.reminders.scan_interval}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show store and scheduler status.")
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add <title> [due=+1h] [priority=high] [type=course] [remind=15].",
)
registry.register(
    "list",
    cmd_list,
    help_text="List tasks: /list [type=..] [status=..] [min=..] [from=YYYY-MM-DD] [to=YYYY-MM-DD].",
    aliases=["ls"],
)
registry.register("board", cmd_board, help_text="Show the dashboard lanes: /board [days].")
registry.register("start", cmd_start, help_text="Mark a task in progress: /start <id>.")
registry.register("done", cmd_done, help_text="Complete a task: /done <id>.")
registry.register("snooze", cmd_snooze, help_text="Push a deadline: /snooze <id> <minutes>.")
registry.register("remind", cmd_remind, help_text="Toggle a reminder: /remind <id> on|off [minutes].")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("interval", cmd_interval, help_text="Set reminder scan interval: /interval <minutes>.")
