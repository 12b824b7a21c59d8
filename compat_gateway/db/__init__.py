"""Database layer."""

from compat_gateway.db.session import (
    SessionFactory,
    build_session_factory,
    close_db,
    create_engine,
    create_tables,
    get_session_factory,
    init_db,
)

__all__ = [
    "SessionFactory",
    "build_session_factory",
    "close_db",
    "create_engine",
    "create_tables",
    "get_session_factory",
    "init_db",
]
