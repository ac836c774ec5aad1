"""Explicit state machines for dataset, datasource and event status."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from depwatch.domain.errors import IllegalTransitionError
from depwatch.domain.model.enums import DatasetStatus, DatasourceEventStatus, DatasourceStatus

if TYPE_CHECKING:
    from collections.abc import Mapping
    from enum import StrEnum


@dataclass(frozen=True, slots=True)
class StatusMachine[TStatus: StrEnum]:
    """Table of legal transitions; staying in the same state is always allowed."""

    entity: str
    transitions: Mapping[TStatus, frozenset[TStatus]]

    def can_transition(self, current: TStatus, target: TStatus) -> bool:
        if current == target:
            return True
        return target in self.transitions.get(current, frozenset())

    def require(self, current: TStatus, target: TStatus) -> None:
        if not self.can_transition(current, target):
            raise IllegalTransitionError(self.entity, current, target)


_DS = DatasourceStatus
_DT = DatasetStatus
_EV = DatasourceEventStatus

DATASOURCE_MACHINE: Final = StatusMachine[DatasourceStatus](
    entity="datasource",
    transitions={
        _DS.INITIALIZING: frozenset({_DS.READY_FOR_PROCESSING, _DS.PROCESSING_ERROR}),
        _DS.INGESTING: frozenset({_DS.READY_FOR_PROCESSING, _DS.IDLE, _DS.PROCESSING_ERROR}),
        _DS.READY_FOR_PROCESSING: frozenset(
            {_DS.INGESTING, _DS.PROCESSING, _DS.PROCESSING_ERROR}
        ),
        _DS.PROCESSING: frozenset(
            {_DS.READY_FOR_NEXT_PROCESSING, _DS.IDLE, _DS.PROCESSING_ERROR}
        ),
        _DS.READY_FOR_NEXT_PROCESSING: frozenset({_DS.PROCESSING, _DS.PROCESSING_ERROR}),
        _DS.IDLE: frozenset({_DS.INGESTING, _DS.READY_FOR_PROCESSING, _DS.PROCESSING_ERROR}),
        _DS.PROCESSING_ERROR: frozenset({_DS.INGESTING, _DS.READY_FOR_PROCESSING}),
    },
)

DATASET_MACHINE: Final = StatusMachine[DatasetStatus](
    entity="dataset",
    transitions={
        _DT.INITIALIZING: frozenset({_DT.READY_FOR_PROCESSING, _DT.PROCESSING_ERROR}),
        _DT.INGESTING: frozenset({_DT.READY_FOR_PROCESSING, _DT.IDLE, _DT.PROCESSING_ERROR}),
        _DT.READY_FOR_PROCESSING: frozenset(
            {_DT.INGESTING, _DT.PROCESSING, _DT.PROCESSING_ERROR}
        ),
        _DT.PROCESSING: frozenset({_DT.IDLE, _DT.PROCESSING_ERROR}),
        _DT.IDLE: frozenset({_DT.INGESTING, _DT.READY_FOR_PROCESSING, _DT.PROCESSING_ERROR}),
        _DT.PROCESSING_ERROR: frozenset({_DT.INGESTING, _DT.READY_FOR_PROCESSING}),
    },
)

EVENT_MACHINE: Final = StatusMachine[DatasourceEventStatus](
    entity="datasource event",
    transitions={
        _EV.INGESTING: frozenset({_EV.READY_FOR_PROCESSING, _EV.PROCESSING_ERROR}),
        _EV.READY_FOR_PROCESSING: frozenset({_EV.PROCESSED, _EV.PROCESSING_ERROR}),
        _EV.PROCESSED: frozenset(),
        _EV.PROCESSING_ERROR: frozenset(),
    },
)

# An incoming event never overrides these; the aggregate keeps its status.
DATASOURCE_NON_OVERRIDE: Final[frozenset[DatasourceStatus]] = frozenset(
    {_DS.INITIALIZING, _DS.PROCESSING, _DS.READY_FOR_NEXT_PROCESSING}
)
DATASET_NON_OVERRIDE: Final[frozenset[DatasetStatus]] = frozenset(
    {_DT.INITIALIZING, _DT.PROCESSING}
)

# Children in these states keep a PROCESSING dataset busy.
DATASOURCE_BUSY: Final[frozenset[DatasourceStatus]] = frozenset(
    {_DS.PROCESSING, _DS.INGESTING, _DS.INITIALIZING, _DS.READY_FOR_NEXT_PROCESSING}
)

EVENT_SETTLED: Final[frozenset[DatasourceEventStatus]] = frozenset(
    {_EV.READY_FOR_PROCESSING, _EV.PROCESSED}
)
