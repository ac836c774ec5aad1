"""Repository implementations backed by SQLAlchemy sessions.

Dataset and datasource creation is a single ``INSERT ... ON CONFLICT DO UPDATE``
statement, so concurrent first submissions for the same key never produce two rows.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING

from packageurl import PackageURL
from sqlalchemy import case, delete, literal, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from depwatch.adapters.sqlalchemy.mappings import (
    dataset_datasource_table,
    dataset_table,
    datasource_event_package_table,
    datasource_event_table,
    datasource_table,
    package_table,
)
from depwatch.domain.errors import DuplicateEventError, IntegrityViolationError
from depwatch.domain.model import (
    DATASET_NON_OVERRIDE,
    DATASOURCE_NON_OVERRIDE,
    Dataset,
    DatasetStatus,
    Datasource,
    DatasourceEvent,
    DatasourceEventStatus,
    DatasourceStatus,
    new_id,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable
    from datetime import datetime
    from enum import StrEnum
    from uuid import UUID

    from sqlalchemy import Column, ColumnElement, Table
    from sqlalchemy.orm import Session

    from depwatch.domain.identifier import EventIdentifier

log = logging.getLogger(__name__)


def _insert_for(session: Session, table: Table) -> sqlite.Insert | postgresql.Insert:
    """Return the dialect-specific INSERT that supports ON CONFLICT clauses."""

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Atomic upsert is not supported for dialect {dialect!r}")


def _keep_or(
    column: Column[StrEnum], keep: Collection[StrEnum], target: StrEnum
) -> ColumnElement[StrEnum]:
    return case(
        (column.in_(sorted(keep)), column),
        else_=literal(target, column.type),
    )


class SqlAlchemyDatasetRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def upsert(self, name: str, *, received_at: datetime, txid: UUID) -> Dataset:
        insert = _insert_for(self.session, dataset_table).values(
            id=new_id(),
            name=name,
            status=DatasetStatus.INITIALIZING,
            updated_at=received_at,
            latest_txid=txid,
        )
        stmt = insert.on_conflict_do_update(
            index_elements=[dataset_table.c.name],
            set_={
                "status": _keep_or(
                    dataset_table.c.status, DATASET_NON_OVERRIDE, DatasetStatus.INGESTING
                ),
                "updated_at": insert.excluded.updated_at,
                "latest_txid": insert.excluded.latest_txid,
            },
        ).returning(dataset_table.c.id)
        dataset_id = self.session.execute(stmt).scalar_one()
        return self._load(dataset_id)

    def get(self, dataset_id: UUID) -> Dataset | None:
        return self.session.get(Dataset, dataset_id)

    def get_by_name(self, name: str) -> Dataset | None:
        stmt = select(Dataset).where(dataset_table.c.name == name)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_by_status(self, status: DatasetStatus) -> list[Dataset]:
        stmt = (
            select(Dataset)
            .where(dataset_table.c.status == status)
            .order_by(dataset_table.c.name)
        )
        return list(self.session.scalars(stmt))

    def _load(self, dataset_id: UUID) -> Dataset:
        dataset = self.session.get(Dataset, dataset_id, populate_existing=True)
        if dataset is None:
            raise IntegrityViolationError(f"upserted dataset {dataset_id} not found")
        return dataset


class SqlAlchemyDatasourceRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def upsert(
        self, identifier: EventIdentifier, *, received_at: datetime, txid: UUID
    ) -> Datasource:
        insert = _insert_for(self.session, datasource_table).values(
            id=new_id(),
            purl=identifier.datasource_purl,
            domain=identifier.domain,
            name=identifier.packed_name,
            commit_branch=identifier.branch,
            type=identifier.datasource_type,
            status=DatasourceStatus.INITIALIZING,
            number_events_received=1,
            number_event_processing_errors=0,
            first_event_received_at=received_at,
            last_event_received_at=received_at,
            last_event_received_status=HTTPStatus.ACCEPTED.phrase,
            latest_txid=txid,
        )
        stmt = insert.on_conflict_do_update(
            index_elements=[datasource_table.c.purl],
            set_={
                "status": _keep_or(
                    datasource_table.c.status, DATASOURCE_NON_OVERRIDE, DatasourceStatus.INGESTING
                ),
                "number_events_received": datasource_table.c.number_events_received + 1,
                "last_event_received_at": insert.excluded.last_event_received_at,
                "last_event_received_status": insert.excluded.last_event_received_status,
                "latest_txid": insert.excluded.latest_txid,
            },
        ).returning(datasource_table.c.id)
        datasource_id = self.session.execute(stmt).scalar_one()
        datasource = self.session.get(Datasource, datasource_id, populate_existing=True)
        if datasource is None:
            raise IntegrityViolationError(f"upserted datasource {datasource_id} not found")
        return datasource

    def link_dataset(self, datasource_id: UUID, dataset_id: UUID) -> None:
        stmt = (
            _insert_for(self.session, dataset_datasource_table)
            .values(dataset_id=dataset_id, datasource_id=datasource_id)
            .on_conflict_do_nothing(
                index_elements=[
                    dataset_datasource_table.c.dataset_id,
                    dataset_datasource_table.c.datasource_id,
                ]
            )
        )
        self.session.execute(stmt)

    def get(self, datasource_id: UUID) -> Datasource | None:
        return self.session.get(Datasource, datasource_id)

    def get_by_purl(self, purl: str) -> Datasource | None:
        stmt = select(Datasource).where(datasource_table.c.purl == purl)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_by_status(
        self, status: DatasourceStatus, *, last_event_before: datetime | None = None
    ) -> list[Datasource]:
        stmt = select(Datasource).where(datasource_table.c.status == status)
        if last_event_before is not None:
            stmt = stmt.where(datasource_table.c.last_event_received_at < last_event_before)
        return list(self.session.scalars(stmt.order_by(datasource_table.c.purl)))

    def list_for_dataset(self, dataset_id: UUID) -> list[Datasource]:
        stmt = (
            select(Datasource)
            .join(
                dataset_datasource_table,
                dataset_datasource_table.c.datasource_id == datasource_table.c.id,
            )
            .where(dataset_datasource_table.c.dataset_id == dataset_id)
            .order_by(datasource_table.c.purl)
        )
        return list(self.session.scalars(stmt))


class SqlAlchemyDatasourceEventRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, event: DatasourceEvent) -> None:
        self.session.add(event)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # a failed flush leaves the transaction unusable
            self.session.rollback()
            if not self.find_by_purl(event.purl):
                raise
            raise DuplicateEventError(event.purl) from exc

    def delete(self, event: DatasourceEvent) -> None:
        # sqlite only cascades with foreign key enforcement switched on
        self.session.execute(
            delete(datasource_event_package_table).where(
                datasource_event_package_table.c.datasource_event_id == event.id
            )
        )
        self.session.delete(event)
        self.session.flush()

    def find_by_purl(self, purl: str) -> list[DatasourceEvent]:
        stmt = select(DatasourceEvent).where(datasource_event_table.c.purl == purl)
        return list(self.session.scalars(stmt))

    def statuses_for_datasource(self, datasource_id: UUID) -> list[DatasourceEventStatus]:
        stmt = select(datasource_event_table.c.status).where(
            datasource_event_table.c.datasource_id == datasource_id
        )
        return list(self.session.scalars(stmt))

    def datasources_with_status(
        self, status: DatasourceEventStatus, datasource_ids: Collection[UUID]
    ) -> set[UUID]:
        if not datasource_ids:
            return set()
        stmt = (
            select(datasource_event_table.c.datasource_id)
            .where(datasource_event_table.c.status == status)
            .where(datasource_event_table.c.datasource_id.in_(list(datasource_ids)))
            .distinct()
        )
        return set(self.session.scalars(stmt))


class SqlAlchemyPackageRepository:
    """Upsert packages by purl and associate them with the event that reported them."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def record_packages(
        self, event_id: UUID, purls: Iterable[str], *, updated_at: datetime
    ) -> int:
        recorded = 0
        for purl in dict.fromkeys(purls):
            try:
                parsed = PackageURL.from_string(purl)
            except ValueError:
                log.debug("Skipping package with unparsable purl %s", purl)
                continue
            insert = _insert_for(self.session, package_table).values(
                id=new_id(),
                purl=purl,
                type=parsed.type,
                namespace=parsed.namespace,
                name=parsed.name,
                version=parsed.version,
                updated_at=updated_at,
            )
            stmt = insert.on_conflict_do_update(
                index_elements=[package_table.c.purl],
                set_={"updated_at": insert.excluded.updated_at},
            ).returning(package_table.c.id)
            package_id = self.session.execute(stmt).scalar_one()
            link = (
                _insert_for(self.session, datasource_event_package_table)
                .values(datasource_event_id=event_id, package_id=package_id)
                .on_conflict_do_nothing(
                    index_elements=[
                        datasource_event_package_table.c.datasource_event_id,
                        datasource_event_package_table.c.package_id,
                    ]
                )
            )
            self.session.execute(link)
            recorded += 1
        return recorded
