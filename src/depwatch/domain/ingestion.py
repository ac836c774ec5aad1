"""Application service handling one datasource event submission."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from http import HTTPStatus
from typing import TYPE_CHECKING

from depwatch.domain.errors import (
    BundleError,
    GraphBuildError,
    IdentifierValidationError,
    IngestError,
    IntegrityViolationError,
)
from depwatch.domain.identifier import validate_event_identifier
from depwatch.domain.ingest_pipeline import (
    BuiltGraph,
    NoGraph,
    build_dependency_graph,
    bundle_files,
    unpacked_archive,
)
from depwatch.domain.model import new_id
from depwatch.domain.recorder import EventRecorder, RecordStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from depwatch.config import ServiceConfig
    from depwatch.domain.identifier import EventIdentifier
    from depwatch.domain.ports.classification import DataFileParser, FileClassifier
    from depwatch.domain.ports.unit_of_work import IngestUnitOfWork

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class IngestRequest:
    identifier: str
    archive: bytes
    filename: str | None = None


@dataclass(frozen=True, slots=True)
class IngestResponse:
    code: int
    txid: UUID
    received_at: datetime
    message: str | None = None

    @property
    def accepted(self) -> bool:
        return self.code == HTTPStatus.ACCEPTED


class IngestionService:
    """Validate, unpack, bundle, graph and record one event.

    Every outcome is an ``IngestResponse``: 202 when stored, 400 for client faults
    (bad identifier, unusable archive, duplicate event) and 500 for system faults.
    Archive and graph failures are counted against the datasource.
    """

    def __init__(
        self,
        *,
        config: ServiceConfig,
        unit_of_work_factory: Callable[[], IngestUnitOfWork],
        classifier: FileClassifier,
        parser: DataFileParser,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._unit_of_work_factory = unit_of_work_factory
        self._classifier = classifier
        self._parser = parser
        self._clock = clock
        self._recorder = EventRecorder(unit_of_work_factory)

    def ingest(self, request: IngestRequest) -> IngestResponse:
        txid = new_id()
        received_at = self._clock()

        def respond(status: HTTPStatus, message: str | None = None) -> IngestResponse:
            return IngestResponse(
                code=status.value, txid=txid, received_at=received_at, message=message
            )

        try:
            identifier = validate_event_identifier(
                request.identifier, expected_domain=self._config.expected_domain
            )
        except IdentifierValidationError as exc:
            log.warning("Rejected identifier %r: %s", request.identifier, exc.message)
            return respond(HTTPStatus.BAD_REQUEST, exc.message)

        try:
            dataset_id, datasource_id = self._register(
                identifier, txid=txid, received_at=received_at
            )
        except Exception:
            log.exception("Could not register datasource %s", identifier.datasource_purl)
            return respond(HTTPStatus.INTERNAL_SERVER_ERROR, "could not register datasource")

        try:
            graph = self._build_graph(request, identifier)
            outcome = self._recorder.record(
                identifier,
                graph,
                datasource_id=datasource_id,
                dataset_id=dataset_id,
                txid=txid,
                received_at=received_at,
            )
        except IngestError as exc:
            log.warning("Rejecting event %s: %s", identifier.event_purl, exc)
            self._record_error(datasource_id, HTTPStatus.BAD_REQUEST)
            return respond(HTTPStatus.BAD_REQUEST, str(exc))
        except IntegrityViolationError:
            log.critical(
                "Integrity violation while recording %s", identifier.event_purl, exc_info=True
            )
            self._record_error(datasource_id, HTTPStatus.INTERNAL_SERVER_ERROR)
            return respond(HTTPStatus.INTERNAL_SERVER_ERROR, "integrity violation")
        except Exception:
            log.exception("Unexpected failure while ingesting %s", identifier.event_purl)
            self._record_error(datasource_id, HTTPStatus.INTERNAL_SERVER_ERROR)
            return respond(HTTPStatus.INTERNAL_SERVER_ERROR, "internal error")

        if outcome.status == RecordStatus.CONFLICT:
            return respond(HTTPStatus.BAD_REQUEST, outcome.message)
        return respond(HTTPStatus.ACCEPTED)

    def _register(
        self, identifier: EventIdentifier, *, txid: UUID, received_at: datetime
    ) -> tuple[UUID, UUID]:
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            dataset = repositories.datasets.upsert(
                identifier.domain, received_at=received_at, txid=txid
            )
            datasource = repositories.datasources.upsert(
                identifier, received_at=received_at, txid=txid
            )
            repositories.datasources.link_dataset(datasource.id, dataset.id)
            uow.commit()
            return dataset.id, datasource.id

    def _build_graph(self, request: IngestRequest, identifier: EventIdentifier) -> BuiltGraph:
        temp_root = self._config.temp_root
        with unpacked_archive(
            request.archive, temp_root=temp_root, filename=request.filename
        ) as unpacked:
            projects = bundle_files(
                unpacked.files(),
                temp_root=temp_root,
                classifier=self._classifier,
                exclude=(unpacked.archive_path,),
            )
            if not projects:
                raise BundleError(f"event {identifier.event_purl} has no complete project bundle")
            if len(projects) > 1:
                log.warning(
                    "Archive for %s holds %d projects, using the first one",
                    identifier.event_purl,
                    len(projects),
                )
            # the archive's project folder is named after the commit, not the repository
            files = next(iter(projects.values()))
            result = build_dependency_graph(files, identifier, parser=self._parser)

        if isinstance(result, NoGraph):
            raise GraphBuildError(f"event {identifier.event_purl}: {result.reason}")
        if result.is_empty:
            raise GraphBuildError(
                f"event {identifier.event_purl} has an empty SBOM - rejecting event"
            )
        return result

    def _record_error(self, datasource_id: UUID, status: HTTPStatus) -> None:
        try:
            self._recorder.record_processing_error(datasource_id, status.phrase)
        except Exception:
            log.exception("Could not record processing error for datasource %s", datasource_id)


__all__ = ["IngestRequest", "IngestResponse", "IngestionService"]
