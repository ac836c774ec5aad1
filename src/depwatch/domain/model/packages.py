"""Dependency graph model built from a project's data files."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, ClassVar, Final

from packageurl import PackageURL

from depwatch.domain.model.enums import PackageDataType

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

# deepest dependency tree an event payload may carry
MAX_TREE_DEPTH: Final[int] = 256


def purl_coordinates(purl: str) -> str:
    """Return ``purl`` without qualifiers and subpath, for matching packages across tools."""

    try:
        parsed = PackageURL.from_string(purl)
    except ValueError:
        return purl
    return PackageURL(
        type=parsed.type,
        namespace=parsed.namespace,
        name=parsed.name,
        version=parsed.version,
    ).to_string()


@dataclass(frozen=True, slots=True)
class VulnerabilityFinding:
    identifier: str
    severity: str
    description: str | None = None
    fixed_in: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BlameAnnotation:
    """Who last touched the build-file line declaring a dependency."""

    author: str
    commit_hash: str
    committed_at: str | None = None
    line: int | None = None


@dataclass(frozen=True, slots=True)
class SbomPackage:
    ref: str
    purl: str
    licenses: tuple[str, ...] = ()


@dataclass(kw_only=True)
class PackageData:
    """Auxiliary data parsed from one file and merged into the project root."""

    DATA_TYPE: ClassVar[PackageDataType]

    source_file: str

    @property
    def data_type(self) -> PackageDataType:
        return self.DATA_TYPE

    def to_payload(self) -> dict[str, object]:
        payload = asdict(self)
        payload["data_type"] = self.DATA_TYPE.value
        return payload


@dataclass(kw_only=True)
class SbomPackageData(PackageData):
    DATA_TYPE: ClassVar[PackageDataType] = PackageDataType.SBOM

    tool: str | None = None
    packages: list[SbomPackage] = field(default_factory=list)
    # (child ref, parent ref) pairs taken from the SBOM's dependency relationships
    dependency_of: list[tuple[str, str]] = field(default_factory=list)

    @property
    def has_packages(self) -> bool:
        return bool(self.packages)

    def build_tree(self, root_purl: str) -> PackageNode:
        """Rebuild a dependency tree rooted at ``root_purl``.

        Packages nest under their declared parent; packages without a parent known to
        the SBOM become direct children of the root. Cycles are broken by attaching
        each package at most once. The walk keeps an explicit stack, so long
        dependency chains do not hit the interpreter's recursion limit.
        """

        root = PackageNode(purl=root_purl, sbom_derived=True)
        nodes = {
            package.ref: PackageNode(purl=package.purl, licenses=list(package.licenses))
            for package in self.packages
        }
        parent_of: dict[str, str] = {}
        for child_ref, parent_ref in self.dependency_of:
            if child_ref in nodes and parent_ref in nodes and child_ref != parent_ref:
                parent_of.setdefault(child_ref, parent_ref)
        children_of: dict[str, list[str]] = {}
        for child_ref, parent_ref in parent_of.items():
            children_of.setdefault(parent_ref, []).append(child_ref)

        attached: set[str] = set()

        def attach(ref: str, owner: PackageNode) -> None:
            stack = [(ref, owner)]
            while stack:
                current, parent = stack.pop()
                if current in attached:
                    continue
                attached.add(current)
                node = nodes[current]
                parent.children.append(node)
                stack.extend((child, node) for child in reversed(children_of.get(current, ())))

        for package in self.packages:
            if package.ref not in parent_of:
                attach(package.ref, root)
        # whatever is left only hangs off a cycle
        for package in self.packages:
            attach(package.ref, root)
        return root


@dataclass(kw_only=True)
class BuildMetadataPackageData(PackageData):
    DATA_TYPE: ClassVar[PackageDataType] = PackageDataType.BUILD_METADATA

    properties: dict[str, str] = field(default_factory=dict)


@dataclass(kw_only=True)
class OssReportPackageData(PackageData):
    DATA_TYPE: ClassVar[PackageDataType] = PackageDataType.OSS

    tool: str | None = None
    findings: dict[str, list[VulnerabilityFinding]] = field(default_factory=dict)


@dataclass(eq=False, kw_only=True)
class PackageNode:
    purl: str
    is_root: bool = False
    sbom_derived: bool = False
    project_name: str | None = None
    scope: str | None = None
    licenses: list[str] = field(default_factory=list)
    vulnerabilities: list[VulnerabilityFinding] = field(default_factory=list)
    blame: BlameAnnotation | None = None
    children: list[PackageNode] = field(default_factory=list)
    dependency_data: dict[PackageDataType, list[PackageData]] = field(default_factory=dict)

    def iter_descendants(self) -> Iterator[PackageNode]:
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    @property
    def dependency_count(self) -> int:
        return sum(1 for _ in self.iter_descendants())

    def add_dependency_data(self, data: Iterable[PackageData]) -> None:
        for item in data:
            self.dependency_data.setdefault(item.data_type, []).append(item)

    def disseminate_package_data(self) -> None:
        """Copy SBOM licenses and OSS findings onto matching descendants."""

        licenses: dict[str, tuple[str, ...]] = {}
        for sbom in self.dependency_data.get(PackageDataType.SBOM, []):
            if isinstance(sbom, SbomPackageData):
                for package in sbom.packages:
                    if package.licenses:
                        licenses.setdefault(purl_coordinates(package.purl), package.licenses)

        findings: dict[str, list[VulnerabilityFinding]] = {}
        for report in self.dependency_data.get(PackageDataType.OSS, []):
            if isinstance(report, OssReportPackageData):
                for purl, matches in report.findings.items():
                    findings.setdefault(purl_coordinates(purl), []).extend(matches)

        for node in self.iter_descendants():
            key = purl_coordinates(node.purl)
            if not node.licenses and key in licenses:
                node.licenses = list(licenses[key])
            for finding in findings.get(key, []):
                if finding not in node.vulnerabilities:
                    node.vulnerabilities.append(finding)

    @property
    def depth(self) -> int:
        """Levels below this node; a node without children has depth 0."""

        deepest = 0
        stack = [(child, 1) for child in self.children]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            stack.extend((child, level + 1) for child in node.children)
        return deepest

    def _payload(self, children: list[dict[str, object]]) -> dict[str, object]:
        payload: dict[str, object] = {
            "purl": self.purl,
            "is_root": self.is_root,
            "sbom_derived": self.sbom_derived,
            "project_name": self.project_name,
            "scope": self.scope,
            "licenses": list(self.licenses),
            "vulnerabilities": [asdict(finding) for finding in self.vulnerabilities],
            "blame": asdict(self.blame) if self.blame is not None else None,
            "children": children,
        }
        if self.dependency_data:
            payload["dependency_data"] = {
                data_type.value: [item.to_payload() for item in items]
                for data_type, items in sorted(self.dependency_data.items())
            }
        return payload

    def to_payload(self) -> dict[str, object]:
        # reversed preorder visits every child before its parent
        payloads: dict[int, dict[str, object]] = {}
        for node in reversed([self, *self.iter_descendants()]):
            children = [payloads[id(child)] for child in node.children]
            payloads[id(node)] = node._payload(children)
        return payloads[id(self)]


def serialize_graph(root: PackageNode) -> bytes:
    """Serialize a dependency tree into the stored event payload.

    Every tree level adds two levels of JSON nesting, so callers keep trees within
    ``MAX_TREE_DEPTH`` levels to stay inside the encoder's recursion limit.
    """

    return json.dumps(root.to_payload(), sort_keys=True).encode("utf-8")
