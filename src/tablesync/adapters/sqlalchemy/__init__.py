"""SQLAlchemy adapter package for tablesync."""

from __future__ import annotations

from .row_store import RowStoreError, SqlAlchemyRowStore
from .unit_of_work import (
    SqlAlchemyRowStoreUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "RowStoreError",
    "SqlAlchemyRowStore",
    "SqlAlchemyRowStoreUnitOfWork",
    "StartupError",
    "configured_engine",
    "is_started",
    "shutdown",
    "startup",
]
