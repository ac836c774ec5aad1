"""Pydantic models describing the data files shipped inside an event archive."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator

DEPENDENCY_OF = "dependency-of"


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class DataFileBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ToolDescriptor(DataFileBaseModel):
    name: str
    version: str | None = None


# Build-file blame -------------------------------------------------------------


class BlamePayload(DataFileBaseModel):
    author: str
    commit_hash: str = Field(alias="commitHash")
    committed_at: str | None = Field(default=None, alias="committedAt")
    line: int | None = None


class BlameDependencyPayload(DataFileBaseModel):
    purl: str
    scope: str | None = None
    blame: BlamePayload | None = None
    dependencies: list[BlameDependencyPayload] = Field(default_factory=list)

    _normalize_scope = field_validator("scope", mode="before")(_blank_to_none)


class BlameFilePayload(DataFileBaseModel):
    purl: str
    project: str | None = None
    dependencies: list[BlameDependencyPayload] = Field(default_factory=list)


# Syft SBOM --------------------------------------------------------------------


class SyftArtifactPayload(DataFileBaseModel):
    id: str
    name: str | None = None
    version: str | None = None
    purl: str | None = None
    licenses: list[str] = Field(default_factory=list)

    @field_validator("licenses", mode="before")
    @classmethod
    def _flatten_licenses(cls, value: object) -> object:
        # syft >= 0.80 reports license objects, older releases plain strings
        if not isinstance(value, list):
            return value
        flattened: list[object] = []
        for item in cast(list[object], value):
            if isinstance(item, Mapping):
                mapping = cast(Mapping[str, object], item)
                flattened.append(mapping.get("value") or mapping.get("spdxExpression"))
            else:
                flattened.append(item)
        return [item for item in flattened if isinstance(item, str) and item]

    _normalize_purl = field_validator("purl", mode="before")(_blank_to_none)


class SyftRelationshipPayload(DataFileBaseModel):
    parent: str
    child: str
    type: str


class SyftDocumentPayload(DataFileBaseModel):
    artifacts: list[SyftArtifactPayload] = Field(default_factory=list)
    artifact_relationships: list[SyftRelationshipPayload] = Field(
        default_factory=list, alias="artifactRelationships"
    )
    descriptor: ToolDescriptor | None = None


# Grype vulnerability report ---------------------------------------------------


class GrypeFixPayload(DataFileBaseModel):
    versions: list[str] = Field(default_factory=list)
    state: str | None = None


class GrypeVulnerabilityPayload(DataFileBaseModel):
    id: str
    severity: str = "Unknown"
    description: str | None = None
    fix: GrypeFixPayload | None = None


class GrypeArtifactPayload(DataFileBaseModel):
    name: str | None = None
    version: str | None = None
    purl: str | None = None

    _normalize_purl = field_validator("purl", mode="before")(_blank_to_none)


class GrypeMatchPayload(DataFileBaseModel):
    vulnerability: GrypeVulnerabilityPayload
    artifact: GrypeArtifactPayload


class GrypeReportPayload(DataFileBaseModel):
    matches: list[GrypeMatchPayload] = Field(default_factory=list)
    descriptor: ToolDescriptor | None = None


# ETL build metadata -----------------------------------------------------------


class BuildMetadataPayload(RootModel[dict[str, str | int | float | bool | None]]):
    """Flat key/value document written by the build pipeline."""

    def properties(self) -> dict[str, str]:
        return {key: str(value) for key, value in self.root.items() if value is not None}


__all__ = [
    "DEPENDENCY_OF",
    "BlameDependencyPayload",
    "BlameFilePayload",
    "BlamePayload",
    "BuildMetadataPayload",
    "GrypeMatchPayload",
    "GrypeReportPayload",
    "SyftArtifactPayload",
    "SyftDocumentPayload",
    "SyftRelationshipPayload",
    "ToolDescriptor",
]
