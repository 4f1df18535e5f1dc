"""Database layer - engine, sessions, and base classes."""

from fleet_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from fleet_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    read_scope,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "read_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
