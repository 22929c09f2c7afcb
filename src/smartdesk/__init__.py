"""
SmartDesk task engine.

Packages:
- core: errors, clock, ports (Protocols) and the shared application state
- tasks: task model, dashboard lanes, SQLite store, service and reminder scheduler
- cli / connectors: composition root, slash commands and the console REPL
"""

__version__ = "0.1.0"
