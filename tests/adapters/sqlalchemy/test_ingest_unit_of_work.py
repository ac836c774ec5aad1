from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, inspect

from depwatch.adapters.sqlalchemy.migrations import current_revision
from depwatch.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyIngestUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from depwatch.domain.model import DatasetStatus

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyIngestUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()


def test_startup_migrates_schema() -> None:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine)

    tables = set(inspect(engine).get_table_names())
    assert {
        "alembic_version",
        "dataset",
        "datasource",
        "dataset_datasource",
        "datasource_event",
        "package",
        "datasource_event_package",
    } <= tables
    assert current_revision(engine) == "0001_initial_schema"


def test_repositories_unavailable_outside_context(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyIngestUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories


def test_commit_persists_and_exit_without_commit_discards(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyIngestUnitOfWork() as uow:
        uow.repositories.datasets.upsert("acme", received_at=NOW, txid=uuid4())
        uow.commit()

    with SqlAlchemyIngestUnitOfWork() as uow:
        uow.repositories.datasets.upsert("discarded", received_at=NOW, txid=uuid4())

    with SqlAlchemyIngestUnitOfWork() as uow:
        datasets = uow.repositories.datasets.list_by_status(DatasetStatus.INITIALIZING)
        assert [dataset.name for dataset in datasets] == ["acme"]


def test_exception_rolls_back(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(RuntimeError), SqlAlchemyIngestUnitOfWork() as uow:
        uow.repositories.datasets.upsert("acme", received_at=NOW, txid=uuid4())
        raise RuntimeError("boom")

    with SqlAlchemyIngestUnitOfWork() as uow:
        assert uow.repositories.datasets.get_by_name("acme") is None
