"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from depwatch.adapters.sqlalchemy.mappings import UTCDateTime

revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_DATASET_STATUSES = (
    "INITIALIZING",
    "INGESTING",
    "READY_FOR_PROCESSING",
    "PROCESSING",
    "IDLE",
    "PROCESSING_ERROR",
)
_DATASOURCE_STATUSES = (*_DATASET_STATUSES, "READY_FOR_NEXT_PROCESSING")
_EVENT_STATUSES = ("INGESTING", "READY_FOR_PROCESSING", "PROCESSED", "PROCESSING_ERROR")


def _status(name: str, values: tuple[str, ...]) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    op.create_table(
        "dataset",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("status", _status("datasetstatus", _DATASET_STATUSES), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.Column("latest_txid", sa.Uuid(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_dataset")),
        sa.UniqueConstraint("name", name=op.f("uq_dataset_name")),
    )
    op.create_table(
        "datasource",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("purl", sa.String(length=1024), nullable=False),
        sa.Column("domain", sa.String(length=256), nullable=False),
        sa.Column("name", sa.String(length=512), nullable=False),
        sa.Column("commit_branch", sa.String(length=256), nullable=False),
        sa.Column("type", sa.String(length=256), nullable=False),
        sa.Column(
            "status", _status("datasourcestatus", _DATASOURCE_STATUSES), nullable=False
        ),
        sa.Column("number_events_received", sa.Integer(), nullable=False),
        sa.Column("number_event_processing_errors", sa.Integer(), nullable=False),
        sa.Column("first_event_received_at", UTCDateTime(), nullable=True),
        sa.Column("last_event_received_at", UTCDateTime(), nullable=True),
        sa.Column("last_event_received_status", sa.String(length=64), nullable=True),
        sa.Column("latest_txid", sa.Uuid(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_datasource")),
        sa.UniqueConstraint("purl", name=op.f("uq_datasource_purl")),
    )
    op.create_index(
        "ix_datasource_status_last_event",
        "datasource",
        ["status", "last_event_received_at"],
        unique=False,
    )
    op.create_table(
        "dataset_datasource",
        sa.Column("dataset_id", sa.Uuid(), nullable=False),
        sa.Column("datasource_id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(
            ["dataset_id"],
            ["dataset.id"],
            name=op.f("fk_dataset_datasource_dataset_id_dataset"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["datasource_id"],
            ["datasource.id"],
            name=op.f("fk_dataset_datasource_datasource_id_datasource"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("dataset_id", "datasource_id", name=op.f("pk_dataset_datasource")),
    )
    op.create_table(
        "datasource_event",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("purl", sa.String(length=2048), nullable=False),
        sa.Column("datasource_id", sa.Uuid(), nullable=False),
        sa.Column("txid", sa.Uuid(), nullable=False),
        sa.Column("commit_hash", sa.String(length=64), nullable=False),
        sa.Column("commit_branch", sa.String(length=256), nullable=False),
        sa.Column("commit_datetime", UTCDateTime(), nullable=False),
        sa.Column("event_datetime", UTCDateTime(), nullable=False),
        sa.Column(
            "status", _status("datasourceeventstatus", _EVENT_STATUSES), nullable=False
        ),
        sa.Column("payload", sa.LargeBinary(), nullable=False),
        sa.ForeignKeyConstraint(
            ["datasource_id"],
            ["datasource.id"],
            name=op.f("fk_datasource_event_datasource_id_datasource"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_datasource_event")),
        sa.UniqueConstraint("purl", name=op.f("uq_datasource_event_purl")),
    )
    op.create_index(
        op.f("ix_datasource_event_datasource_id"),
        "datasource_event",
        ["datasource_id"],
        unique=False,
    )
    op.create_table(
        "package",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("purl", sa.String(length=2048), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("namespace", sa.String(length=512), nullable=True),
        sa.Column("name", sa.String(length=512), nullable=False),
        sa.Column("version", sa.String(length=256), nullable=True),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_package")),
        sa.UniqueConstraint("purl", name=op.f("uq_package_purl")),
    )
    op.create_table(
        "datasource_event_package",
        sa.Column("datasource_event_id", sa.Uuid(), nullable=False),
        sa.Column("package_id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(
            ["datasource_event_id"],
            ["datasource_event.id"],
            name="fk_datasource_event_package_event_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["package_id"],
            ["package.id"],
            name=op.f("fk_datasource_event_package_package_id_package"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "datasource_event_id", "package_id", name=op.f("pk_datasource_event_package")
        ),
    )


def downgrade() -> None:
    op.drop_table("datasource_event_package")
    op.drop_table("package")
    op.drop_index(op.f("ix_datasource_event_datasource_id"), table_name="datasource_event")
    op.drop_table("datasource_event")
    op.drop_table("dataset_datasource")
    op.drop_index("ix_datasource_status_last_event", table_name="datasource")
    op.drop_table("datasource")
    op.drop_table("dataset")
