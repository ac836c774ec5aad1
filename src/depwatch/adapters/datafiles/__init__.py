"""Classification and parsing of the data files inside an event archive."""

from __future__ import annotations

from .classifier import BUILD_METADATA_FILENAME, classify_data_file
from .translator import (
    parse_blame_file,
    parse_build_metadata,
    parse_data_file,
    parse_grype_report,
    parse_syft_sbom,
)

__all__ = [
    "BUILD_METADATA_FILENAME",
    "classify_data_file",
    "parse_blame_file",
    "parse_build_metadata",
    "parse_data_file",
    "parse_grype_report",
    "parse_syft_sbom",
]
