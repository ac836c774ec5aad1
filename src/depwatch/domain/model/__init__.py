"""Public domain model surface."""

from __future__ import annotations

from depwatch.domain.model.aggregates import Dataset, Datasource, DatasourceEvent
from depwatch.domain.model.entity import Entity, new_id
from depwatch.domain.model.enums import (
    DataFileType,
    DatasetStatus,
    DatasourceEventStatus,
    DatasourceStatus,
    PackageDataType,
    RejectionReason,
)
from depwatch.domain.model.packages import (
    MAX_TREE_DEPTH,
    BlameAnnotation,
    BuildMetadataPackageData,
    OssReportPackageData,
    PackageData,
    PackageNode,
    SbomPackage,
    SbomPackageData,
    VulnerabilityFinding,
    purl_coordinates,
    serialize_graph,
)
from depwatch.domain.model.status import (
    DATASET_MACHINE,
    DATASET_NON_OVERRIDE,
    DATASOURCE_BUSY,
    DATASOURCE_MACHINE,
    DATASOURCE_NON_OVERRIDE,
    EVENT_MACHINE,
    EVENT_SETTLED,
    StatusMachine,
)

__all__ = [  # noqa: RUF022
    # base
    "Entity",
    "new_id",
    # aggregates
    "Dataset",
    "Datasource",
    "DatasourceEvent",
    # enums
    "DataFileType",
    "DatasetStatus",
    "DatasourceEventStatus",
    "DatasourceStatus",
    "PackageDataType",
    "RejectionReason",
    # dependency graph
    "MAX_TREE_DEPTH",
    "BlameAnnotation",
    "BuildMetadataPackageData",
    "OssReportPackageData",
    "PackageData",
    "PackageNode",
    "SbomPackage",
    "SbomPackageData",
    "VulnerabilityFinding",
    "purl_coordinates",
    "serialize_graph",
    # state machines
    "StatusMachine",
    "DATASET_MACHINE",
    "DATASOURCE_MACHINE",
    "EVENT_MACHINE",
    "DATASET_NON_OVERRIDE",
    "DATASOURCE_NON_OVERRIDE",
    "DATASOURCE_BUSY",
    "EVENT_SETTLED",
]
