"""Periodic re-derivation of dataset and datasource status from their children."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Final, Literal

from depwatch.domain.model import (
    DATASOURCE_BUSY,
    EVENT_SETTLED,
    DatasetStatus,
    DatasourceEventStatus,
    DatasourceStatus,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from enum import StrEnum
    from uuid import UUID

    from depwatch.domain.model import Dataset, Datasource
    from depwatch.domain.ports.unit_of_work import IngestRepositories, IngestUnitOfWork

log = logging.getLogger(__name__)

DEFAULT_GRACE_WINDOW: Final[timedelta] = timedelta(minutes=2)
MAX_ROUNDS: Final[int] = 3


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class StatusChange:
    kind: Literal["dataset", "datasource"]
    entity_id: UUID
    label: str
    previous: StrEnum
    current: StrEnum


@dataclass(slots=True)
class SweepReport:
    """Transitions applied by one sweep."""

    swept_at: datetime
    changes: list[StatusChange] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    def move_dataset(
        self, dataset: Dataset, target: DatasetStatus, *, at: datetime | None = None
    ) -> None:
        previous = dataset.status
        if dataset.transition_to(target, at=at):
            log.info("marking dataset %s %s", dataset.name, target)
            self.changes.append(StatusChange("dataset", dataset.id, dataset.name, previous, target))

    def move_datasource(self, datasource: Datasource, target: DatasourceStatus) -> None:
        previous = datasource.status
        if datasource.transition_to(target):
            log.info("marking datasource %s %s", datasource.purl, target)
            self.changes.append(
                StatusChange("datasource", datasource.id, datasource.purl, previous, target)
            )


class StatusReconciler:
    """Run the three reconciliation passes inside one unit of work.

    Children are loaded by id query in every pass, so each pass sees the statuses
    written by the previous one. A later pass can unblock an earlier one: a stale
    INGESTING datasource settling lets its INITIALIZING dataset move on. The passes
    are therefore repeated until a round changes nothing, at most ``MAX_ROUNDS``
    times, so running a sweep twice without new events changes nothing the second
    time.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], IngestUnitOfWork],
        grace_window: timedelta = DEFAULT_GRACE_WINDOW,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._grace_window = grace_window
        self._clock = clock

    def sweep(self, now: datetime | None = None) -> SweepReport:
        now = now or self._clock()
        report = SweepReport(swept_at=now)
        cutoff = now - self._grace_window
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            for round_number in range(1, MAX_ROUNDS + 1):
                applied = len(report.changes)
                self._finish_initializing(repositories, cutoff, report)
                self._finish_ingesting(repositories, cutoff, report)
                self._reclaim_idle(repositories, now, report)
                if len(report.changes) == applied:
                    break
                log.debug(
                    "sweep round %d applied %d change(s)",
                    round_number,
                    len(report.changes) - applied,
                )
            uow.commit()
        log.info("Sweep finished with %d status change(s)", len(report.changes))
        return report

    def _finish_initializing(
        self, repositories: IngestRepositories, cutoff: datetime, report: SweepReport
    ) -> None:
        for datasource in repositories.datasources.list_by_status(
            DatasourceStatus.INITIALIZING, last_event_before=cutoff
        ):
            statuses = repositories.events.statuses_for_datasource(datasource.id)
            if all(status in EVENT_SETTLED for status in statuses):
                report.move_datasource(datasource, DatasourceStatus.READY_FOR_PROCESSING)

        for dataset in repositories.datasets.list_by_status(DatasetStatus.INITIALIZING):
            children = repositories.datasources.list_for_dataset(dataset.id)
            still_gathering = {DatasourceStatus.INITIALIZING, DatasourceStatus.INGESTING}
            if not any(child.status in still_gathering for child in children):
                report.move_dataset(dataset, DatasetStatus.READY_FOR_PROCESSING)

    def _finish_ingesting(
        self, repositories: IngestRepositories, cutoff: datetime, report: SweepReport
    ) -> None:
        stale = repositories.datasources.list_by_status(
            DatasourceStatus.INGESTING, last_event_before=cutoff
        )
        if not stale:
            log.debug("no datasources found with status INGESTING older than the grace window")
        for datasource in stale:
            statuses = set(repositories.events.statuses_for_datasource(datasource.id))
            ready = DatasourceEventStatus.READY_FOR_PROCESSING in statuses
            ingesting = DatasourceEventStatus.INGESTING in statuses
            if ready and not ingesting:
                report.move_datasource(datasource, DatasourceStatus.READY_FOR_PROCESSING)
            else:
                report.move_datasource(datasource, DatasourceStatus.IDLE)

        for dataset in repositories.datasets.list_by_status(DatasetStatus.INGESTING):
            children = repositories.datasources.list_for_dataset(dataset.id)
            if any(child.status == DatasourceStatus.READY_FOR_PROCESSING for child in children):
                report.move_dataset(dataset, DatasetStatus.READY_FOR_PROCESSING)
            else:
                report.move_dataset(dataset, DatasetStatus.IDLE)

    def _reclaim_idle(
        self, repositories: IngestRepositories, now: datetime, report: SweepReport
    ) -> None:
        for dataset in repositories.datasets.list_by_status(DatasetStatus.PROCESSING):
            children = repositories.datasources.list_for_dataset(dataset.id)
            if not any(child.status in DATASOURCE_BUSY for child in children):
                report.move_dataset(dataset, DatasetStatus.IDLE)

        for dataset in repositories.datasets.list_by_status(DatasetStatus.IDLE):
            children = repositories.datasources.list_for_dataset(dataset.id)
            with_ready_events = repositories.events.datasources_with_status(
                DatasourceEventStatus.READY_FOR_PROCESSING, [child.id for child in children]
            )
            ready_children = [
                child
                for child in children
                if child.status == DatasourceStatus.READY_FOR_PROCESSING
                or child.id in with_ready_events
            ]
            if not ready_children:
                continue
            log.info("discovered READY_FOR_PROCESSING data in dataset %s", dataset.name)
            report.move_dataset(dataset, DatasetStatus.READY_FOR_PROCESSING, at=now)
            for child in ready_children:
                if child.can_transition_to(DatasourceStatus.READY_FOR_PROCESSING):
                    report.move_datasource(child, DatasourceStatus.READY_FOR_PROCESSING)
                else:
                    log.info(
                        "leaving datasource %s in %s while its dataset is promoted",
                        child.purl,
                        child.status,
                    )
