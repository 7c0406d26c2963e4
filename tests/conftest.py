from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import Table, create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from tablesync.adapters.sqlalchemy.unit_of_work import shutdown, startup
from tablesync.domain.sync.properties import PropertySpec, PropertyType, SyncSchema
from tests.support.tables import build_task_table

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def task_table() -> Table:
    return build_task_table()


@pytest.fixture
def task_schema() -> SyncSchema:
    return SyncSchema(
        id_properties=("name",),
        local_properties=(
            PropertySpec("amount", PropertyType.NUMBER),
            PropertySpec("tags", PropertyType.MULTI_VALUE),
        ),
        remote_properties=(
            PropertySpec("due", PropertyType.DATE),
            PropertySpec("done", PropertyType.BOOLEAN),
        ),
    )


@pytest.fixture
def sqlite_engine(task_table: Table) -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    task_table.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def started_adapter(sqlite_engine: Engine) -> Iterator[Engine]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield sqlite_engine
    finally:
        shutdown()
