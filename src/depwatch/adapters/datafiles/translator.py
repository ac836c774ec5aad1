"""Translate data file payloads into dependency graph nodes and auxiliary data."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from depwatch.domain.errors import DataFileParseError
from depwatch.domain.model import (
    BlameAnnotation,
    BuildMetadataPackageData,
    DataFileType,
    OssReportPackageData,
    PackageNode,
    SbomPackage,
    SbomPackageData,
    VulnerabilityFinding,
)

from .schema import (
    DEPENDENCY_OF,
    BlameDependencyPayload,
    BlameFilePayload,
    BuildMetadataPayload,
    GrypeReportPayload,
    SyftDocumentPayload,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic import BaseModel

    from depwatch.domain.ingest_pipeline.data_files import DataFile
    from depwatch.domain.model import PackageData

log = getLogger(__name__)


def _load[TModel: BaseModel](data_file: DataFile, model: type[TModel]) -> TModel:
    try:
        raw = data_file.path.read_bytes()
    except OSError as exc:
        raise DataFileParseError(f"cannot read {data_file.path.name}: {exc}") from exc
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        message = f"{data_file.path.name} is not a valid {data_file.file_type} file"
        raise DataFileParseError(message) from exc


def _blame_annotation(payload: BlameDependencyPayload) -> BlameAnnotation | None:
    if payload.blame is None:
        return None
    return BlameAnnotation(
        author=payload.blame.author,
        commit_hash=payload.blame.commit_hash,
        committed_at=payload.blame.committed_at,
        line=payload.blame.line,
    )


def _blame_tree(root: PackageNode, dependencies: list[BlameDependencyPayload]) -> PackageNode:
    stack = [(payload, root) for payload in reversed(dependencies)]
    while stack:
        payload, parent = stack.pop()
        node = PackageNode(
            purl=payload.purl, scope=payload.scope, blame=_blame_annotation(payload)
        )
        parent.children.append(node)
        stack.extend((child, node) for child in reversed(payload.dependencies))
    return root


def parse_blame_file(data_file: DataFile) -> PackageNode:
    payload = _load(data_file, BlameFilePayload)
    root = PackageNode(purl=payload.purl, project_name=payload.project or data_file.project_name)
    return _blame_tree(root, payload.dependencies)


def parse_syft_sbom(data_file: DataFile) -> SbomPackageData:
    payload = _load(data_file, SyftDocumentPayload)
    packages = [
        SbomPackage(ref=artifact.id, purl=artifact.purl, licenses=tuple(artifact.licenses))
        for artifact in payload.artifacts
        if artifact.purl is not None
    ]
    skipped = len(payload.artifacts) - len(packages)
    if skipped:
        log.debug("Ignoring %d SBOM artifact(s) without purl in %s", skipped, data_file.path.name)
    # syft reads "parent is a dependency of child", so the tree parent is the child
    dependency_of = [
        (relationship.parent, relationship.child)
        for relationship in payload.artifact_relationships
        if relationship.type == DEPENDENCY_OF
    ]
    return SbomPackageData(
        source_file=data_file.path.name,
        tool=payload.descriptor.name if payload.descriptor else None,
        packages=packages,
        dependency_of=dependency_of,
    )


def parse_build_metadata(data_file: DataFile) -> BuildMetadataPackageData:
    payload = _load(data_file, BuildMetadataPayload)
    return BuildMetadataPackageData(
        source_file=data_file.path.name, properties=payload.properties()
    )


def parse_grype_report(data_file: DataFile) -> OssReportPackageData:
    payload = _load(data_file, GrypeReportPayload)
    findings: dict[str, list[VulnerabilityFinding]] = {}
    for match in payload.matches:
        if match.artifact.purl is None:
            continue
        vulnerability = match.vulnerability
        finding = VulnerabilityFinding(
            identifier=vulnerability.id,
            severity=vulnerability.severity,
            description=vulnerability.description,
            fixed_in=tuple(vulnerability.fix.versions) if vulnerability.fix else (),
        )
        findings.setdefault(match.artifact.purl, []).append(finding)
    return OssReportPackageData(
        source_file=data_file.path.name,
        tool=payload.descriptor.name if payload.descriptor else None,
        findings=findings,
    )


_PARSERS: dict[DataFileType, Callable[[DataFile], PackageNode | PackageData]] = {
    DataFileType.BUILD_FILE_GIT_BLAME: parse_blame_file,
    DataFileType.SYFT_SBOM: parse_syft_sbom,
    DataFileType.ETL_BUILD_METADATA: parse_build_metadata,
    DataFileType.GRYPE_OSS: parse_grype_report,
}


def parse_data_file(data_file: DataFile) -> PackageNode | PackageData:
    """Parse one classified file; raise ``DataFileParseError`` when it is unusable."""

    parser = _PARSERS.get(data_file.file_type)
    if parser is None:
        raise DataFileParseError(f"no parser for {data_file.file_type}")
    return parser(data_file)


if TYPE_CHECKING:
    from depwatch.domain.ports.classification import DataFileParser

    _parser_check: DataFileParser = parse_data_file
