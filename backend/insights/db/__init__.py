"""Database utilities and session management."""

from insights.db.base import Base, BaseModel, String255, String500, utcnow
from insights.db.deps import DBSession, get_db
from insights.db.session import (
    AsyncSessionLocal,
    check_db_health,
    close_db,
    engine,
    get_session,
    init_db,
)

__all__ = [
    # Base classes
    "Base",
    "BaseModel",
    "utcnow",
    # String types
    "String255",
    "String500",
    # Session management
    "engine",
    "AsyncSessionLocal",
    "get_session",
    "init_db",
    "close_db",
    "check_db_health",
    # Dependencies
    "get_db",
    "DBSession",
]
