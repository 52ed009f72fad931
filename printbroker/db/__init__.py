"""
Database module.
Contains database connection, models, and repository implementations.
"""

from printbroker.db.connection import (
    close_db,
    create_tables,
    get_async_session,
    get_engine,
    get_session_context,
    init_db,
)
from printbroker.db.models import Base, PrintJob

__all__ = [
    "get_async_session",
    "get_session_context",
    "get_engine",
    "init_db",
    "create_tables",
    "close_db",
    "PrintJob",
    "Base",
]
