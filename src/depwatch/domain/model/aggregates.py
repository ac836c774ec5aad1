"""Dataset, Datasource and DatasourceEvent aggregates.

The three levels reference each other by id only. Status changes go through
``transition_to`` so every change is checked against the entity's state machine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from depwatch.domain.errors import IllegalTransitionError
from depwatch.domain.model.entity import Entity
from depwatch.domain.model.enums import DatasetStatus, DatasourceEventStatus, DatasourceStatus
from depwatch.domain.model.status import DATASET_MACHINE, DATASOURCE_MACHINE, EVENT_MACHINE

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class Dataset(Entity):
    """All datasources reported for one domain."""

    name: str
    status: DatasetStatus = DatasetStatus.INITIALIZING
    updated_at: datetime | None = None
    latest_txid: UUID | None = None

    def can_transition_to(self, target: DatasetStatus) -> bool:
        return DATASET_MACHINE.can_transition(self.status, target)

    def transition_to(self, target: DatasetStatus, *, at: datetime | None = None) -> bool:
        """Move to ``target`` and return whether the status actually changed."""

        DATASET_MACHINE.require(self.status, target)
        if at is not None:
            self.updated_at = at
        if self.status == target:
            return False
        self.status = target
        return True


@dataclass(eq=False, kw_only=True)
class Datasource(Entity):
    """One tracked repository, branch and datasource type combination."""

    purl: str
    domain: str
    name: str
    commit_branch: str
    type: str
    status: DatasourceStatus = DatasourceStatus.INITIALIZING
    number_events_received: int = 0
    number_event_processing_errors: int = 0
    first_event_received_at: datetime | None = None
    last_event_received_at: datetime | None = None
    last_event_received_status: str | None = None
    latest_txid: UUID | None = None

    def can_transition_to(self, target: DatasourceStatus) -> bool:
        return DATASOURCE_MACHINE.can_transition(self.status, target)

    def transition_to(self, target: DatasourceStatus) -> bool:
        """Move to ``target`` and return whether the status actually changed."""

        DATASOURCE_MACHINE.require(self.status, target)
        if self.status == target:
            return False
        self.status = target
        return True

    def record_processing_error(self, reason_phrase: str) -> None:
        """Count a failed event; a datasource under active processing keeps its status."""

        self.number_event_processing_errors += 1
        self.last_event_received_status = reason_phrase
        if self.status != DatasourceStatus.PROCESSING:
            self.transition_to(DatasourceStatus.PROCESSING_ERROR)


@dataclass(eq=False, kw_only=True)
class DatasourceEvent(Entity):
    """One ingested commit snapshot for a datasource."""

    purl: str
    datasource_id: UUID
    txid: UUID
    commit_hash: str
    commit_branch: str
    commit_datetime: datetime
    event_datetime: datetime
    status: DatasourceEventStatus = DatasourceEventStatus.INGESTING
    payload: bytes | None = None

    def transition_to(self, target: DatasourceEventStatus) -> bool:
        EVENT_MACHINE.require(self.status, target)
        if target == DatasourceEventStatus.READY_FOR_PROCESSING and not self.payload:
            raise IllegalTransitionError("datasource event", self.status, target)
        if self.status == target:
            return False
        self.status = target
        return True

    def mark_ready(self, payload: bytes) -> None:
        """Attach the serialized dependency graph and hand the event to processing."""

        self.payload = payload
        self.transition_to(DatasourceEventStatus.READY_FOR_PROCESSING)
