from __future__ import annotations

import json
from datetime import UTC, datetime
from http import HTTPStatus
from typing import TYPE_CHECKING

import pytest

from depwatch.adapters.datafiles import classify_data_file, parse_data_file
from depwatch.domain.identifier import validate_event_identifier
from depwatch.domain.ingestion import IngestionService, IngestRequest
from depwatch.domain.model import (
    DatasetStatus,
    DatasourceEventStatus,
    DatasourceStatus,
    PackageNode,
)
from tests.helpers.events import (
    CHALK_PURL,
    OTHER_COMMIT_HASH,
    blame_document,
    build_archive,
    complete_archive,
    make_identifier,
    project_files,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from depwatch.adapters.sqlalchemy.unit_of_work import SqlAlchemyIngestUnitOfWork
    from depwatch.config import ServiceConfig
    from depwatch.domain.ingest_pipeline import DataFile
    from depwatch.domain.model import PackageData

    UowFactory = Callable[[], SqlAlchemyIngestUnitOfWork]

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
IDENTIFIER = validate_event_identifier(make_identifier(), expected_domain="acme")


@pytest.fixture
def service(service_config: ServiceConfig, sqlite_unit_of_work: UowFactory) -> IngestionService:
    return IngestionService(
        config=service_config,
        unit_of_work_factory=sqlite_unit_of_work,
        classifier=classify_data_file,
        parser=parse_data_file,
        clock=lambda: NOW,
    )


def _request() -> IngestRequest:
    return IngestRequest(identifier=make_identifier(), archive=complete_archive())


def _ingest(service: IngestionService, archive: bytes, identifier: str | None = None) -> int:
    response = service.ingest(
        IngestRequest(identifier=identifier or make_identifier(), archive=archive)
    )
    return response.code


def test_first_event_is_accepted_and_stored(
    service: IngestionService, sqlite_unit_of_work: UowFactory, service_config: ServiceConfig
) -> None:
    response = service.ingest(_request())

    assert response.code == HTTPStatus.ACCEPTED
    assert response.accepted
    assert response.received_at == NOW
    with sqlite_unit_of_work() as uow:
        dataset = uow.repositories.datasets.get_by_name("acme")
        datasource = uow.repositories.datasources.get_by_purl(IDENTIFIER.datasource_purl)
        (event,) = uow.repositories.events.find_by_purl(IDENTIFIER.event_purl)
    assert dataset is not None
    assert dataset.status == DatasetStatus.INITIALIZING
    assert datasource is not None
    assert datasource.status == DatasourceStatus.INITIALIZING
    assert datasource.number_events_received == 1
    assert event.status == DatasourceEventStatus.READY_FOR_PROCESSING
    assert event.txid == response.txid
    assert event.datasource_id == datasource.id
    assert event.payload is not None
    payload = json.loads(event.payload)
    assert payload["is_root"] is True
    assert payload["project_name"] == "foo-service"
    assert list(service_config.temp_root.iterdir()) == []


def test_invalid_identifier_is_rejected_without_side_effects(
    service: IngestionService, sqlite_unit_of_work: UowFactory
) -> None:
    response = service.ingest(
        IngestRequest(identifier=make_identifier(domain="elsewhere"), archive=complete_archive())
    )

    assert response.code == HTTPStatus.BAD_REQUEST
    assert response.message is not None
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.datasets.get_by_name("elsewhere") is None


def test_duplicate_event_is_a_conflict(
    service: IngestionService, sqlite_unit_of_work: UowFactory
) -> None:
    assert _ingest(service, complete_archive()) == HTTPStatus.ACCEPTED
    with sqlite_unit_of_work() as uow:
        (stored,) = uow.repositories.events.find_by_purl(IDENTIFIER.event_purl)

    response = service.ingest(
        IngestRequest(
            identifier=make_identifier(),
            archive=build_archive(
                project_files(blame=blame_document(dependencies=[{"purl": CHALK_PURL}]))
            ),
        )
    )

    assert response.code == HTTPStatus.BAD_REQUEST
    assert response.message == (
        f"event {IDENTIFIER.event_purl} already exists and has been previously processed."
    )
    assert response.txid != stored.txid
    with sqlite_unit_of_work() as uow:
        (event,) = uow.repositories.events.find_by_purl(IDENTIFIER.event_purl)
        datasource = uow.repositories.datasources.get_by_purl(IDENTIFIER.datasource_purl)
    assert event.id == stored.id
    assert event.txid == stored.txid
    assert event.payload == stored.payload
    assert event.status == DatasourceEventStatus.READY_FOR_PROCESSING
    assert datasource is not None
    assert datasource.number_events_received == 2


def test_published_identifier_is_accepted_once(
    service: IngestionService, sqlite_unit_of_work: UowFactory
) -> None:
    published = (
        "pkg:generic/acme/foo-service::main@npm"
        "?commithash=d5dd8011d1a55038262533675eddb96d98c4b984"
        "&commitdatetime=2022-05-13T22:00:56+00:00"
    )
    identifier = validate_event_identifier(published, expected_domain="acme")

    first = service.ingest(IngestRequest(identifier=published, archive=complete_archive()))

    assert first.code == HTTPStatus.ACCEPTED
    with sqlite_unit_of_work() as uow:
        dataset = uow.repositories.datasets.get_by_name("acme")
        datasource = uow.repositories.datasources.get_by_purl(identifier.datasource_purl)
        (stored,) = uow.repositories.events.find_by_purl(identifier.event_purl)
    assert dataset is not None
    assert datasource is not None
    assert datasource.purl == "pkg:generic/acme/foo-service::main@npm"
    assert datasource.status == DatasourceStatus.INITIALIZING
    assert stored.status == DatasourceEventStatus.READY_FOR_PROCESSING
    assert stored.commit_hash == "d5dd8011d1a55038262533675eddb96d98c4b984"
    assert stored.commit_datetime == datetime(2022, 5, 13, 22, 0, 56, tzinfo=UTC)

    second = service.ingest(IngestRequest(identifier=published, archive=complete_archive()))

    assert second.code == HTTPStatus.BAD_REQUEST
    assert second.message is not None
    assert "already exists" in second.message
    with sqlite_unit_of_work() as uow:
        (event,) = uow.repositories.events.find_by_purl(identifier.event_purl)
    assert (event.id, event.txid, event.payload, event.status) == (
        stored.id,
        stored.txid,
        stored.payload,
        DatasourceEventStatus.READY_FOR_PROCESSING,
    )


def test_failed_event_can_be_resubmitted(
    service: IngestionService, sqlite_unit_of_work: UowFactory
) -> None:
    assert _ingest(service, complete_archive()) == HTTPStatus.ACCEPTED
    with sqlite_unit_of_work() as uow:
        (event,) = uow.repositories.events.find_by_purl(IDENTIFIER.event_purl)
        event.transition_to(DatasourceEventStatus.PROCESSING_ERROR)
        failed_id = event.id
        uow.commit()

    response = service.ingest(_request())

    assert response.code == HTTPStatus.ACCEPTED
    with sqlite_unit_of_work() as uow:
        (replacement,) = uow.repositories.events.find_by_purl(IDENTIFIER.event_purl)
    assert replacement.id != failed_id
    assert replacement.status == DatasourceEventStatus.READY_FOR_PROCESSING
    assert replacement.txid == response.txid


def test_new_event_promotes_idle_owners(
    service: IngestionService, sqlite_unit_of_work: UowFactory
) -> None:
    assert _ingest(service, complete_archive()) == HTTPStatus.ACCEPTED
    with sqlite_unit_of_work() as uow:
        dataset = uow.repositories.datasets.get_by_name("acme")
        datasource = uow.repositories.datasources.get_by_purl(IDENTIFIER.datasource_purl)
        assert dataset is not None
        assert datasource is not None
        dataset.status = DatasetStatus.IDLE
        datasource.status = DatasourceStatus.IDLE
        uow.commit()

    code = _ingest(service, complete_archive(), make_identifier(commit_hash=OTHER_COMMIT_HASH))

    assert code == HTTPStatus.ACCEPTED
    with sqlite_unit_of_work() as uow:
        dataset = uow.repositories.datasets.get_by_name("acme")
        datasource = uow.repositories.datasources.get_by_purl(IDENTIFIER.datasource_purl)
    assert dataset is not None
    assert dataset.status == DatasetStatus.READY_FOR_PROCESSING
    assert dataset.updated_at == NOW
    assert datasource is not None
    assert datasource.status == DatasourceStatus.READY_FOR_PROCESSING


@pytest.mark.parametrize(
    "archive",
    [
        pytest.param(b"not a zip", id="corrupt-archive"),
        pytest.param(
            build_archive(
                {
                    "foo-service/package.blame.json": blame_document(),
                    "foo-service/package.syft.json": {"artifacts": []},
                }
            ),
            id="incomplete-bundle",
        ),
        pytest.param(
            build_archive(
                project_files(
                    blame=blame_document(dependencies=[]),
                    syft={"artifacts": []},
                    include_grype=False,
                )
            ),
            id="empty-graph",
        ),
    ],
)
def test_unusable_archives_are_counted_against_the_datasource(
    service: IngestionService,
    sqlite_unit_of_work: UowFactory,
    service_config: ServiceConfig,
    archive: bytes,
) -> None:
    response = service.ingest(IngestRequest(identifier=make_identifier(), archive=archive))

    assert response.code == HTTPStatus.BAD_REQUEST
    with sqlite_unit_of_work() as uow:
        datasource = uow.repositories.datasources.get_by_purl(IDENTIFIER.datasource_purl)
        assert uow.repositories.events.find_by_purl(IDENTIFIER.event_purl) == []
    assert datasource is not None
    assert datasource.number_event_processing_errors == 1
    assert datasource.last_event_received_status == "Bad Request"
    assert datasource.status == DatasourceStatus.PROCESSING_ERROR
    assert list(service_config.temp_root.iterdir()) == []


def test_unexpected_failure_is_a_server_error(
    service_config: ServiceConfig, sqlite_unit_of_work: UowFactory
) -> None:
    def exploding_parser(data_file: DataFile) -> PackageNode | PackageData:
        raise RuntimeError(f"parser crashed on {data_file.path.name}")

    service = IngestionService(
        config=service_config,
        unit_of_work_factory=sqlite_unit_of_work,
        classifier=classify_data_file,
        parser=exploding_parser,
        clock=lambda: NOW,
    )

    response = service.ingest(_request())

    assert response.code == HTTPStatus.INTERNAL_SERVER_ERROR
    with sqlite_unit_of_work() as uow:
        datasource = uow.repositories.datasources.get_by_purl(IDENTIFIER.datasource_purl)
    assert datasource is not None
    assert datasource.last_event_received_status == "Internal Server Error"
    assert list(service_config.temp_root.iterdir()) == []
