# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Keep local paths and overrides in .env (gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
The reminder scan interval is not configurable here; use /interval <minutes> in the console.
"""

ENV_VARS = {
    # App / logging
    "SMARTDESK_APP_NAME": "App display name (default: smartdesk).",
    "SMARTDESK_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Switches
    "SMARTDESK_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    "SMARTDESK_REMINDERS_ENABLED": "Start the reminder scheduler at boot (true/false, default: true).",
    # Paths (gitignored)
    "SMARTDESK_DATA_DIR": "Local data directory (default: .local/smartdesk).",
    "SMARTDESK_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    # Dashboard
    "SMARTDESK_DASHBOARD_UPCOMING_DAYS": "Days after today that count as Upcoming (default: 7).",
}
