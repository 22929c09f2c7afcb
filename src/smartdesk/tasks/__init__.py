"""
Task subsystem.

Components:
- task_models.py: Task value type and its enums (priority, type, status)
- task_board.py: dashboard lanes, board columns and the lane classification
- task_store.py: SQLite-backed repository
- task_service.py: CRUD, lifecycle transitions, filtering, dashboard, reminder queries
- reminder_scheduler.py: background poller that fires each reminder window once
"""
