"""Archive unpacking, bundling and dependency graph assembly."""

from __future__ import annotations

from .archive import UnpackedArchive, unpack_archive, unpacked_archive
from .bundler import bundle_files, project_name_for
from .data_files import NECESSARY_FILE_TYPES, DataFile, is_complete_bundle
from .graph_builder import BuiltGraph, GraphResult, NoGraph, build_dependency_graph

__all__ = [
    "NECESSARY_FILE_TYPES",
    "BuiltGraph",
    "DataFile",
    "GraphResult",
    "NoGraph",
    "UnpackedArchive",
    "build_dependency_graph",
    "bundle_files",
    "is_complete_bundle",
    "project_name_for",
    "unpack_archive",
    "unpacked_archive",
]
