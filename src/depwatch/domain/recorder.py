"""Persist datasource events and the processing errors recorded against datasources."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from depwatch.domain.errors import DuplicateEventError, IntegrityViolationError
from depwatch.domain.model import (
    DATASET_NON_OVERRIDE,
    DATASOURCE_NON_OVERRIDE,
    DatasetStatus,
    DatasourceEvent,
    DatasourceEventStatus,
    DatasourceStatus,
    serialize_graph,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from depwatch.domain.identifier import EventIdentifier
    from depwatch.domain.ingest_pipeline.graph_builder import BuiltGraph
    from depwatch.domain.ports.unit_of_work import IngestRepositories, IngestUnitOfWork

log = logging.getLogger(__name__)


class RecordStatus(StrEnum):
    ACCEPTED = "accepted"
    REPLACED = "replaced"
    CONFLICT = "conflict"


@dataclass(frozen=True, slots=True)
class RecordOutcome:
    status: RecordStatus
    event_id: UUID
    message: str | None = None

    @property
    def stored(self) -> bool:
        return self.status != RecordStatus.CONFLICT


def _single_event(events: list[DatasourceEvent], purl: str) -> DatasourceEvent:
    if len(events) != 1:
        raise IntegrityViolationError(f"expected exactly one event for {purl}, found {len(events)}")
    return events[0]


class EventRecorder:
    """Store one event per purl and promote the owning aggregates."""

    def __init__(self, unit_of_work_factory: Callable[[], IngestUnitOfWork]) -> None:
        self._unit_of_work_factory = unit_of_work_factory

    def record(
        self,
        identifier: EventIdentifier,
        graph: BuiltGraph,
        *,
        datasource_id: UUID,
        dataset_id: UUID,
        txid: UUID,
        received_at: datetime,
    ) -> RecordOutcome:
        """Persist the event as READY_FOR_PROCESSING together with its serialized graph.

        A duplicate purl replaces the stored event only when that event failed
        processing; otherwise the stored event is left untouched and a conflict is
        returned. Nothing is committed unless the whole event, payload included, is.
        """

        event = DatasourceEvent(
            purl=identifier.event_purl,
            datasource_id=datasource_id,
            txid=txid,
            commit_hash=identifier.commit_hash,
            commit_branch=identifier.branch,
            commit_datetime=identifier.commit_datetime,
            event_datetime=received_at,
        )
        event.mark_ready(serialize_graph(graph.root))

        status = RecordStatus.ACCEPTED
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            try:
                repositories.events.add(event)
            except DuplicateEventError:
                log.warning("Event %s was submitted before", event.purl)
                existing = _single_event(repositories.events.find_by_purl(event.purl), event.purl)
                if existing.status != DatasourceEventStatus.PROCESSING_ERROR:
                    message = (
                        f"event {event.purl} already exists and has been previously processed."
                    )
                    return RecordOutcome(
                        status=RecordStatus.CONFLICT, event_id=existing.id, message=message
                    )
                log.info("Reprocessing %s because its previous attempt failed", event.purl)
                repositories.events.delete(existing)
                repositories.events.add(event)
                status = RecordStatus.REPLACED

            repositories.packages.record_packages(
                event.id,
                (node.purl for node in graph.root.iter_descendants()),
                updated_at=received_at,
            )
            self._promote_owners(
                repositories, datasource_id=datasource_id, dataset_id=dataset_id, at=received_at
            )
            uow.commit()

        log.info("Recorded event %s (%s)", event.purl, status)
        return RecordOutcome(status=status, event_id=event.id)

    def record_processing_error(self, datasource_id: UUID, reason_phrase: str) -> None:
        """Count a failed event against its datasource."""

        with self._unit_of_work_factory() as uow:
            datasource = uow.repositories.datasources.get(datasource_id)
            if datasource is None:
                raise IntegrityViolationError(f"datasource {datasource_id} disappeared")
            datasource.record_processing_error(reason_phrase)
            uow.commit()
        log.info(
            "Recorded processing error for %s: %s (%s total)",
            datasource.purl,
            reason_phrase,
            datasource.number_event_processing_errors,
        )

    @staticmethod
    def _promote_owners(
        repositories: IngestRepositories,
        *,
        datasource_id: UUID,
        dataset_id: UUID,
        at: datetime,
    ) -> None:
        datasource = repositories.datasources.get(datasource_id)
        dataset = repositories.datasets.get(dataset_id)
        if datasource is None or dataset is None:
            raise IntegrityViolationError(
                f"owners of the event vanished: datasource={datasource_id}, dataset={dataset_id}"
            )
        # INITIALIZING keeps gathering history; PROCESSING waits for the current run.
        if datasource.status not in DATASOURCE_NON_OVERRIDE:
            datasource.transition_to(DatasourceStatus.READY_FOR_PROCESSING)
        if dataset.status not in DATASET_NON_OVERRIDE:
            dataset.transition_to(DatasetStatus.READY_FOR_PROCESSING, at=at)
