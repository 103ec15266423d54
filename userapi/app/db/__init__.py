"""Database package.

This package provides:
- The User model
- Asynchronous session management and FastAPI dependency injection
- CRUD operations
- Connectivity checks used by the health endpoints
"""

from userapi.app.db.base import Base
from userapi.app.db.models import Role, User
from userapi.app.db.async_session import (
    SessionDep,
    close_async_engine,
    get_async_engine,
    get_async_session,
    get_async_session_maker,
    get_db,
)
from userapi.app.db.init_db import (
    check_connection,
    create_all_tables,
    get_database_info,
    init_database,
)

__all__ = [
    "Base",
    "Role",
    "User",
    "SessionDep",
    "close_async_engine",
    "get_async_engine",
    "get_async_session",
    "get_async_session_maker",
    "get_db",
    "check_connection",
    "create_all_tables",
    "get_database_info",
    "init_database",
]
