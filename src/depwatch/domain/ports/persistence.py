"""Ports for persisting domain aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable
    from datetime import datetime
    from uuid import UUID

    from depwatch.domain.identifier import EventIdentifier
    from depwatch.domain.model import (
        Dataset,
        DatasetStatus,
        Datasource,
        DatasourceEvent,
        DatasourceEventStatus,
        DatasourceStatus,
    )


@runtime_checkable
class DatasetRepository(Protocol):
    """Persistence contract for datasets."""

    def upsert(self, name: str, *, received_at: datetime, txid: UUID) -> Dataset:
        """Atomically create the dataset or fetch it, applying the non-override set."""
        ...

    def get(self, dataset_id: UUID) -> Dataset | None: ...

    def get_by_name(self, name: str) -> Dataset | None: ...

    def list_by_status(self, status: DatasetStatus) -> list[Dataset]: ...


@runtime_checkable
class DatasourceRepository(Protocol):
    """Persistence contract for datasources."""

    def upsert(
        self, identifier: EventIdentifier, *, received_at: datetime, txid: UUID
    ) -> Datasource:
        """Atomically create the datasource or fetch it, applying the non-override set."""
        ...

    def link_dataset(self, datasource_id: UUID, dataset_id: UUID) -> None: ...

    def get(self, datasource_id: UUID) -> Datasource | None: ...

    def get_by_purl(self, purl: str) -> Datasource | None: ...

    def list_by_status(
        self, status: DatasourceStatus, *, last_event_before: datetime | None = None
    ) -> list[Datasource]: ...

    def list_for_dataset(self, dataset_id: UUID) -> list[Datasource]: ...


@runtime_checkable
class DatasourceEventRepository(Protocol):
    """Persistence contract for datasource events."""

    def add(self, event: DatasourceEvent) -> None:
        """Store ``event``; raise ``DuplicateEventError`` when its purl already exists."""
        ...

    def delete(self, event: DatasourceEvent) -> None: ...

    def find_by_purl(self, purl: str) -> list[DatasourceEvent]: ...

    def statuses_for_datasource(self, datasource_id: UUID) -> list[DatasourceEventStatus]: ...

    def datasources_with_status(
        self, status: DatasourceEventStatus, datasource_ids: Collection[UUID]
    ) -> set[UUID]: ...


@runtime_checkable
class PackageRepository(Protocol):
    """Catalog of packages seen in stored events."""

    def record_packages(
        self, event_id: UUID, purls: Iterable[str], *, updated_at: datetime
    ) -> int: ...
