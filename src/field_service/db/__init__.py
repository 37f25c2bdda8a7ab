"""Database layer: declarative base, models, repositories and sessions."""

from field_service.db.base import Base, UUIDType, utcnow
from field_service.db.session import (
    close_db,
    create_engine_for_url,
    get_db_context,
    get_engine,
    get_session_factory,
    init_db,
    make_session_factory,
)
from field_service.db.unit_of_work import TransactionRepositories, UnitOfWork

__all__ = [
    "Base",
    "UUIDType",
    "utcnow",
    "close_db",
    "create_engine_for_url",
    "get_db_context",
    "get_engine",
    "get_session_factory",
    "init_db",
    "make_session_factory",
    "TransactionRepositories",
    "UnitOfWork",
]
