"""Domain enums (pure, dependency-light).

Status values double as their stored names, so the persisted column and the
enum value never disagree.
"""

from __future__ import annotations

from enum import StrEnum


class DatasetStatus(StrEnum):
    INITIALIZING = "INITIALIZING"
    INGESTING = "INGESTING"
    READY_FOR_PROCESSING = "READY_FOR_PROCESSING"
    PROCESSING = "PROCESSING"
    IDLE = "IDLE"
    PROCESSING_ERROR = "PROCESSING_ERROR"


class DatasourceStatus(StrEnum):
    INITIALIZING = "INITIALIZING"
    INGESTING = "INGESTING"
    READY_FOR_PROCESSING = "READY_FOR_PROCESSING"
    PROCESSING = "PROCESSING"
    READY_FOR_NEXT_PROCESSING = "READY_FOR_NEXT_PROCESSING"
    IDLE = "IDLE"
    PROCESSING_ERROR = "PROCESSING_ERROR"


class DatasourceEventStatus(StrEnum):
    INGESTING = "INGESTING"
    READY_FOR_PROCESSING = "READY_FOR_PROCESSING"
    PROCESSED = "PROCESSED"
    PROCESSING_ERROR = "PROCESSING_ERROR"


class DataFileType(StrEnum):
    """Kinds of files an uploaded archive may carry for one project."""

    BUILD_FILE_GIT_BLAME = "BUILD_FILE_GIT_BLAME"
    SYFT_SBOM = "SYFT_SBOM"
    ETL_BUILD_METADATA = "ETL_BUILD_METADATA"
    GRYPE_OSS = "GRYPE_OSS"


class PackageDataType(StrEnum):
    SBOM = "SBOM"
    BUILD_METADATA = "BUILD_METADATA"
    OSS = "OSS"


class RejectionReason(StrEnum):
    """Why an event identifier was refused."""

    MALFORMED_PURL = "MALFORMED_PURL"
    NOT_GENERIC = "NOT_GENERIC"
    INVALID_DOMAIN = "INVALID_DOMAIN"
    UNEXPECTED_DOMAIN = "UNEXPECTED_DOMAIN"
    INVALID_NAME = "INVALID_NAME"
    INVALID_DATASOURCE_TYPE = "INVALID_DATASOURCE_TYPE"
    SUBPATH_PRESENT = "SUBPATH_PRESENT"
    INVALID_QUALIFIERS = "INVALID_QUALIFIERS"
    INVALID_COMMIT_HASH = "INVALID_COMMIT_HASH"
    INVALID_COMMIT_DATETIME = "INVALID_COMMIT_DATETIME"
