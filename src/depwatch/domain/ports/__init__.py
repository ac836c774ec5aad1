"""Domain port definitions for adapters."""

from __future__ import annotations

from .classification import DataFileParser, FileClassifier
from .messaging import ResponsePublisher
from .persistence import (
    DatasetRepository,
    DatasourceEventRepository,
    DatasourceRepository,
    PackageRepository,
)
from .unit_of_work import IngestRepositories, IngestUnitOfWork

__all__ = [
    "DataFileParser",
    "DatasetRepository",
    "DatasourceEventRepository",
    "DatasourceRepository",
    "FileClassifier",
    "IngestRepositories",
    "IngestUnitOfWork",
    "PackageRepository",
    "ResponsePublisher",
]
