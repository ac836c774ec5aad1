"""Recognise data files by name."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from depwatch.domain.model import DataFileType

if TYPE_CHECKING:
    from pathlib import Path

BUILD_METADATA_FILENAME: Final[str] = "etl_build_metadata.json"

_SUFFIXES: Final[tuple[tuple[str, DataFileType], ...]] = (
    (".blame.json", DataFileType.BUILD_FILE_GIT_BLAME),
    (".syft.json", DataFileType.SYFT_SBOM),
    (".grype.json", DataFileType.GRYPE_OSS),
)


def classify_data_file(path: Path) -> DataFileType | None:
    name = path.name.lower()
    if name == BUILD_METADATA_FILENAME:
        return DataFileType.ETL_BUILD_METADATA
    for suffix, file_type in _SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            return file_type
    return None


if TYPE_CHECKING:
    from depwatch.domain.ports.classification import FileClassifier

    _classifier_check: FileClassifier = classify_data_file
