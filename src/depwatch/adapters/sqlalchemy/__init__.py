"""SQLAlchemy adapter package for depwatch."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyDatasetRepository,
    SqlAlchemyDatasourceEventRepository,
    SqlAlchemyDatasourceRepository,
    SqlAlchemyPackageRepository,
)
from .unit_of_work import SqlAlchemyIngestUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyDatasetRepository",
    "SqlAlchemyDatasourceEventRepository",
    "SqlAlchemyDatasourceRepository",
    "SqlAlchemyIngestUnitOfWork",
    "SqlAlchemyPackageRepository",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
