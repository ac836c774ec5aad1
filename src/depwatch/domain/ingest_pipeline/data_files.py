"""Classified files taken from an unpacked archive."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from depwatch.domain.model import DataFileType

if TYPE_CHECKING:
    from pathlib import Path

# A project bundle is only usable when it carries all of these.
NECESSARY_FILE_TYPES: Final[frozenset[DataFileType]] = frozenset(
    {
        DataFileType.BUILD_FILE_GIT_BLAME,
        DataFileType.SYFT_SBOM,
        DataFileType.ETL_BUILD_METADATA,
    }
)
MIN_BUNDLE_SIZE: Final[int] = 3


@dataclass(frozen=True, slots=True)
class DataFile:
    path: Path
    file_type: DataFileType
    project_name: str


def is_complete_bundle(files: list[DataFile]) -> bool:
    present = {data_file.file_type for data_file in files}
    return present >= NECESSARY_FILE_TYPES and len(files) >= MIN_BUNDLE_SIZE
