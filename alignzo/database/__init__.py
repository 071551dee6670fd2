"""Relational storage for records written by the backend."""

from .models import Base, SecurityAlertRecord
from .session import (
    check_db_connection,
    create_db_engine,
    create_session_factory,
    get_database_url,
    init_db,
    session_scope,
)

__all__ = [
    "Base",
    "SecurityAlertRecord",
    "check_db_connection",
    "create_db_engine",
    "create_session_factory",
    "get_database_url",
    "init_db",
    "session_scope",
]
