"""Build one rooted dependency tree from a project's data files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from depwatch.domain.errors import DataFileParseError
from depwatch.domain.model import MAX_TREE_DEPTH, PackageData, PackageNode, SbomPackageData

if TYPE_CHECKING:
    from collections.abc import Sequence

    from depwatch.domain.identifier import EventIdentifier
    from depwatch.domain.ingest_pipeline.data_files import DataFile
    from depwatch.domain.ports.classification import DataFileParser

log = logging.getLogger(__name__)

NO_GRAPH_REASON = "no usable dependency graph"
TOO_DEEP_REASON = f"dependency graph is deeper than {MAX_TREE_DEPTH} levels"


@dataclass(frozen=True, slots=True)
class BuiltGraph:
    root: PackageNode

    @property
    def is_empty(self) -> bool:
        return not self.root.children


@dataclass(frozen=True, slots=True)
class NoGraph:
    reason: str = NO_GRAPH_REASON


type GraphResult = BuiltGraph | NoGraph


def _first_sbom(data: Sequence[PackageData]) -> SbomPackageData | None:
    for item in data:
        if isinstance(item, SbomPackageData):
            return item
    return None


def build_dependency_graph(
    files: Sequence[DataFile],
    identifier: EventIdentifier,
    *,
    parser: DataFileParser,
) -> GraphResult:
    """Parse ``files`` in order and assemble the project's dependency tree.

    A file that encodes a full graph replaces the current root (the last one wins);
    everything else is merged into the root afterwards. Without a root, or with a
    root that lists no dependencies while the SBOM does, the tree is rebuilt from the
    SBOM and marked as SBOM-derived. A tree deeper than ``MAX_TREE_DEPTH`` levels
    yields ``NoGraph``.
    """

    root: PackageNode | None = None
    auxiliary: list[PackageData] = []

    for data_file in files:
        try:
            parsed = parser(data_file)
        except DataFileParseError:
            log.warning(
                "Skipping unparsable %s file %s", data_file.file_type, data_file.path.name
            )
            continue
        if isinstance(parsed, PackageNode):
            if root is not None:
                log.warning("Replacing dependency graph root with %s", data_file.path.name)
            root = parsed
        else:
            auxiliary.append(parsed)

    sbom = _first_sbom(auxiliary)
    if root is not None and not root.children and sbom is not None and sbom.has_packages:
        log.info(
            "Dependency graph for %s is empty, rebuilding it from the SBOM",
            identifier.repository,
        )
        root = None

    if root is None:
        if sbom is None:
            return NoGraph()
        root = sbom.build_tree(identifier.datasource_purl)

    depth = root.depth
    if depth > MAX_TREE_DEPTH:
        log.warning(
            "Dependency graph for %s is %d levels deep, refusing to store it",
            identifier.repository,
            depth,
        )
        return NoGraph(reason=TOO_DEEP_REASON)

    root.is_root = True
    root.project_name = identifier.repository
    root.add_dependency_data(auxiliary)
    root.disseminate_package_data()
    return BuiltGraph(root=root)
