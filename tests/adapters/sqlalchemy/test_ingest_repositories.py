"""Tests for the SQLAlchemy ingestion repositories."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from depwatch.adapters.sqlalchemy import (
    SqlAlchemyDatasetRepository,
    SqlAlchemyDatasourceEventRepository,
    SqlAlchemyDatasourceRepository,
    SqlAlchemyPackageRepository,
    start_mappers,
)
from depwatch.adapters.sqlalchemy.mappings import (
    datasource_event_package_table,
    datasource_table,
    package_table,
)
from depwatch.adapters.sqlalchemy.migrations import upgrade_head
from depwatch.domain.errors import DuplicateEventError
from depwatch.domain.identifier import validate_event_identifier
from depwatch.domain.model import (
    DatasetStatus,
    DatasourceEvent,
    DatasourceEventStatus,
    DatasourceStatus,
)
from tests.helpers.events import OTHER_COMMIT_HASH, make_identifier

if TYPE_CHECKING:
    from pathlib import Path
    from uuid import UUID

    from depwatch.domain.identifier import EventIdentifier

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
IDENTIFIER = validate_event_identifier(make_identifier(), expected_domain="acme")


def _event(identifier: EventIdentifier, datasource_id: UUID) -> DatasourceEvent:
    event = DatasourceEvent(
        purl=identifier.event_purl,
        datasource_id=datasource_id,
        txid=uuid4(),
        commit_hash=identifier.commit_hash,
        commit_branch=identifier.branch,
        commit_datetime=identifier.commit_datetime,
        event_datetime=NOW,
    )
    event.mark_ready(b"{}")
    return event


def test_dataset_upsert_creates_then_keeps_initializing(sqlite_session: Session) -> None:
    repository = SqlAlchemyDatasetRepository(sqlite_session)
    second_txid = uuid4()

    created = repository.upsert("acme", received_at=NOW, txid=uuid4())
    again = repository.upsert("acme", received_at=NOW + timedelta(minutes=1), txid=second_txid)
    sqlite_session.commit()

    assert again.id == created.id
    assert again.status == DatasetStatus.INITIALIZING
    assert again.latest_txid == second_txid
    assert again.updated_at == NOW + timedelta(minutes=1)


def test_dataset_upsert_moves_idle_dataset_to_ingesting(sqlite_session: Session) -> None:
    repository = SqlAlchemyDatasetRepository(sqlite_session)
    dataset = repository.upsert("acme", received_at=NOW, txid=uuid4())
    dataset.status = DatasetStatus.IDLE
    sqlite_session.flush()

    updated = repository.upsert("acme", received_at=NOW, txid=uuid4())

    assert updated.status == DatasetStatus.INGESTING
    assert repository.list_by_status(DatasetStatus.INGESTING) == [updated]


def test_datasource_upsert_counts_events(sqlite_session: Session) -> None:
    repository = SqlAlchemyDatasourceRepository(sqlite_session)
    later = NOW + timedelta(minutes=5)

    created = repository.upsert(IDENTIFIER, received_at=NOW, txid=uuid4())
    updated = repository.upsert(IDENTIFIER, received_at=later, txid=uuid4())

    assert updated.id == created.id
    assert updated.purl == "pkg:generic/acme/foo-service::main@npm"
    assert updated.name == "foo-service::main"
    assert updated.number_events_received == 2
    assert updated.first_event_received_at == NOW
    assert updated.last_event_received_at == later
    assert updated.last_event_received_status == "Accepted"
    assert updated.status == DatasourceStatus.INITIALIZING


@pytest.mark.parametrize(
    ("current", "expected"),
    [
        (DatasourceStatus.IDLE, DatasourceStatus.INGESTING),
        (DatasourceStatus.READY_FOR_PROCESSING, DatasourceStatus.INGESTING),
        (DatasourceStatus.PROCESSING_ERROR, DatasourceStatus.INGESTING),
        (DatasourceStatus.PROCESSING, DatasourceStatus.PROCESSING),
        (
            DatasourceStatus.READY_FOR_NEXT_PROCESSING,
            DatasourceStatus.READY_FOR_NEXT_PROCESSING,
        ),
    ],
)
def test_datasource_upsert_respects_non_override_statuses(
    sqlite_session: Session, current: DatasourceStatus, expected: DatasourceStatus
) -> None:
    repository = SqlAlchemyDatasourceRepository(sqlite_session)
    datasource = repository.upsert(IDENTIFIER, received_at=NOW, txid=uuid4())
    datasource.status = current
    sqlite_session.flush()

    assert repository.upsert(IDENTIFIER, received_at=NOW, txid=uuid4()).status == expected


def test_datasources_are_linked_to_datasets_once(sqlite_session: Session) -> None:
    datasets = SqlAlchemyDatasetRepository(sqlite_session)
    datasources = SqlAlchemyDatasourceRepository(sqlite_session)
    dataset = datasets.upsert("acme", received_at=NOW, txid=uuid4())
    datasource = datasources.upsert(IDENTIFIER, received_at=NOW, txid=uuid4())

    datasources.link_dataset(datasource.id, dataset.id)
    datasources.link_dataset(datasource.id, dataset.id)

    assert datasources.list_for_dataset(dataset.id) == [datasource]
    assert datasources.get_by_purl(IDENTIFIER.datasource_purl) is datasource


def test_list_by_status_filters_on_last_event(sqlite_session: Session) -> None:
    repository = SqlAlchemyDatasourceRepository(sqlite_session)
    repository.upsert(IDENTIFIER, received_at=NOW, txid=uuid4())

    before = repository.list_by_status(
        DatasourceStatus.INITIALIZING, last_event_before=NOW - timedelta(seconds=1)
    )
    after = repository.list_by_status(
        DatasourceStatus.INITIALIZING, last_event_before=NOW + timedelta(seconds=1)
    )

    assert before == []
    assert [datasource.purl for datasource in after] == [IDENTIFIER.datasource_purl]


def test_adding_an_event_twice_raises_duplicate(sqlite_session: Session) -> None:
    datasources = SqlAlchemyDatasourceRepository(sqlite_session)
    events = SqlAlchemyDatasourceEventRepository(sqlite_session)
    datasource = datasources.upsert(IDENTIFIER, received_at=NOW, txid=uuid4())
    sqlite_session.commit()

    events.add(_event(IDENTIFIER, datasource.id))
    sqlite_session.commit()

    with pytest.raises(DuplicateEventError) as excinfo:
        events.add(_event(IDENTIFIER, datasource.id))

    assert excinfo.value.purl == IDENTIFIER.event_purl
    assert len(events.find_by_purl(IDENTIFIER.event_purl)) == 1


def test_event_status_queries(sqlite_session: Session) -> None:
    datasources = SqlAlchemyDatasourceRepository(sqlite_session)
    events = SqlAlchemyDatasourceEventRepository(sqlite_session)
    datasource = datasources.upsert(IDENTIFIER, received_at=NOW, txid=uuid4())
    other = validate_event_identifier(
        make_identifier(commit_hash=OTHER_COMMIT_HASH), expected_domain="acme"
    )
    events.add(_event(IDENTIFIER, datasource.id))
    processed = _event(other, datasource.id)
    processed.transition_to(DatasourceEventStatus.PROCESSED)
    events.add(processed)

    statuses = events.statuses_for_datasource(datasource.id)

    assert sorted(statuses) == sorted(
        [DatasourceEventStatus.READY_FOR_PROCESSING, DatasourceEventStatus.PROCESSED]
    )
    assert events.datasources_with_status(
        DatasourceEventStatus.READY_FOR_PROCESSING, [datasource.id, uuid4()]
    ) == {datasource.id}
    assert events.datasources_with_status(DatasourceEventStatus.PROCESSING_ERROR, []) == set()


def test_record_packages_upserts_catalog_entries(sqlite_session: Session) -> None:
    datasources = SqlAlchemyDatasourceRepository(sqlite_session)
    events = SqlAlchemyDatasourceEventRepository(sqlite_session)
    packages = SqlAlchemyPackageRepository(sqlite_session)
    datasource = datasources.upsert(IDENTIFIER, received_at=NOW, txid=uuid4())
    first = _event(IDENTIFIER, datasource.id)
    second = _event(
        validate_event_identifier(
            make_identifier(commit_hash=OTHER_COMMIT_HASH), expected_domain="acme"
        ),
        datasource.id,
    )
    events.add(first)
    events.add(second)

    recorded = packages.record_packages(
        first.id,
        ["pkg:npm/lodash@4.17.21", "pkg:npm/lodash@4.17.21", "not a purl"],
        updated_at=NOW,
    )
    packages.record_packages(second.id, ["pkg:npm/lodash@4.17.21"], updated_at=NOW)

    assert recorded == 1
    row = sqlite_session.execute(select(package_table)).one()
    assert (row.type, row.namespace, row.name, row.version) == ("npm", None, "lodash", "4.17.21")
    links = sqlite_session.scalar(select(func.count()).select_from(datasource_event_package_table))
    assert links == 2


def test_deleting_an_event_removes_its_package_links(sqlite_session: Session) -> None:
    datasources = SqlAlchemyDatasourceRepository(sqlite_session)
    events = SqlAlchemyDatasourceEventRepository(sqlite_session)
    packages = SqlAlchemyPackageRepository(sqlite_session)
    datasource = datasources.upsert(IDENTIFIER, received_at=NOW, txid=uuid4())
    event = _event(IDENTIFIER, datasource.id)
    events.add(event)
    packages.record_packages(event.id, ["pkg:npm/lodash@4.17.21"], updated_at=NOW)

    events.delete(event)

    assert events.find_by_purl(IDENTIFIER.event_purl) == []
    links = sqlite_session.scalar(select(func.count()).select_from(datasource_event_package_table))
    assert links == 0


def test_concurrent_first_submissions_create_one_datasource(tmp_path: Path) -> None:
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'concurrency.db'}",
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    start_mappers()
    upgrade_head(engine=engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    workers = 8

    def submit(_: int) -> UUID:
        with session_factory() as session:
            datasource = SqlAlchemyDatasourceRepository(session).upsert(
                IDENTIFIER, received_at=NOW, txid=uuid4()
            )
            session.commit()
            return datasource.id

    try:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            ids = set(pool.map(submit, range(workers)))

        with session_factory() as session:
            rows = session.execute(select(datasource_table)).all()
    finally:
        engine.dispose()

    assert len(ids) == 1
    assert len(rows) == 1
    assert rows[0].number_events_received == workers
