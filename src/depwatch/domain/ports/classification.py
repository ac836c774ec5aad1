"""Ports for recognising and parsing the files inside an uploaded archive."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pathlib import Path

    from depwatch.domain.ingest_pipeline.data_files import DataFile
    from depwatch.domain.model import DataFileType, PackageData, PackageNode


@runtime_checkable
class FileClassifier(Protocol):
    """Callable port returning the file's type, or ``None`` for files we do not use."""

    def __call__(self, path: Path) -> DataFileType | None: ...


@runtime_checkable
class DataFileParser(Protocol):
    """Callable port turning one data file into a root node or auxiliary data.

    Implementations raise ``DataFileParseError`` when the file is unusable.
    """

    def __call__(self, data_file: DataFile) -> PackageNode | PackageData: ...


__all__ = ["DataFileParser", "FileClassifier"]
