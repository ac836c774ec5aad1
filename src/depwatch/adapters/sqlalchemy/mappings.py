"""SQLAlchemy mapping metadata for the depwatch domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Table,
    TypeDecorator,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from depwatch.domain.model import (
    Dataset,
    DatasetStatus,
    Datasource,
    DatasourceEvent,
    DatasourceEventStatus,
    DatasourceStatus,
)

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Aggregates -------------------------------------------------------------------

dataset_table = Table(
    "dataset",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("name", String(256), nullable=False, unique=True),
    Column("status", Enum(DatasetStatus, native_enum=False), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    Column("latest_txid", UUIDColumnType, nullable=True),
)

datasource_table = Table(
    "datasource",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("purl", String(1024), nullable=False, unique=True),
    Column("domain", String(256), nullable=False),
    Column("name", String(512), nullable=False),
    Column("commit_branch", String(256), nullable=False),
    Column("type", String(256), nullable=False),
    Column("status", Enum(DatasourceStatus, native_enum=False), nullable=False),
    Column("number_events_received", Integer, nullable=False, default=0),
    Column("number_event_processing_errors", Integer, nullable=False, default=0),
    Column("first_event_received_at", UTCDateTime(), nullable=True),
    Column("last_event_received_at", UTCDateTime(), nullable=True),
    Column("last_event_received_status", String(64), nullable=True),
    Column("latest_txid", UUIDColumnType, nullable=True),
    Index("ix_datasource_status_last_event", "status", "last_event_received_at"),
)

dataset_datasource_table = Table(
    "dataset_datasource",
    mapper_registry.metadata,
    Column(
        "dataset_id",
        UUIDColumnType,
        ForeignKey("dataset.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "datasource_id",
        UUIDColumnType,
        ForeignKey("datasource.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

datasource_event_table = Table(
    "datasource_event",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("purl", String(2048), nullable=False, unique=True),
    Column(
        "datasource_id",
        UUIDColumnType,
        ForeignKey("datasource.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("txid", UUIDColumnType, nullable=False),
    Column("commit_hash", String(64), nullable=False),
    Column("commit_branch", String(256), nullable=False),
    Column("commit_datetime", UTCDateTime(), nullable=False),
    Column("event_datetime", UTCDateTime(), nullable=False),
    Column("status", Enum(DatasourceEventStatus, native_enum=False), nullable=False),
    Column("payload", LargeBinary, nullable=False),
)

# Package catalog --------------------------------------------------------------

package_table = Table(
    "package",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("purl", String(2048), nullable=False, unique=True),
    Column("type", String(64), nullable=False),
    Column("namespace", String(512), nullable=True),
    Column("name", String(512), nullable=False),
    Column("version", String(256), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=False),
)

datasource_event_package_table = Table(
    "datasource_event_package",
    mapper_registry.metadata,
    Column(
        "datasource_event_id",
        UUIDColumnType,
        ForeignKey(
            "datasource_event.id",
            ondelete="CASCADE",
            name="fk_datasource_event_package_event_id",
        ),
        primary_key=True,
    ),
    Column(
        "package_id",
        UUIDColumnType,
        ForeignKey("package.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model.

    Aggregates are mapped without relationships; they refer to each other by id.
    """

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Dataset, dataset_table)
    mapper_registry.map_imperatively(Datasource, datasource_table)
    mapper_registry.map_imperatively(DatasourceEvent, datasource_event_table)

    configure_mappers()
    return mapper_registry
