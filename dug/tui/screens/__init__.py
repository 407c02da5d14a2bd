"""Screen modules for the TUI."""
from __future__ import annotations

# Import all screen modules to register them with the router
from . import (
    connect,
    dashboard,
    database,
    record,
    system,
    table,
)

__all__ = [
    "connect",
    "dashboard",
    "database",
    "record",
    "system",
    "table",
]
