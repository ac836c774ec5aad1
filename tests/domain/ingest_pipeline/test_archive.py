from __future__ import annotations

import io
import zipfile
from typing import TYPE_CHECKING

import pytest

from depwatch.domain.errors import ArchiveError
from depwatch.domain.ingest_pipeline import unpack_archive, unpacked_archive
from tests.helpers.events import build_archive

if TYPE_CHECKING:
    from pathlib import Path


def test_unpack_archive_extracts_into_fresh_directory(tmp_path: Path) -> None:
    content = build_archive({"proj/package.blame.json": {"purl": "pkg:npm/x@1"}})

    unpacked = unpack_archive(content, temp_root=tmp_path, filename="upload.zip")

    assert unpacked.work_dir.parent == tmp_path
    assert unpacked.archive_path == unpacked.work_dir / "upload.zip"
    assert unpacked.files() == [unpacked.work_dir / "proj" / "package.blame.json"]


def test_unpack_archive_strips_directories_from_filename(tmp_path: Path) -> None:
    content = build_archive({"proj/a.txt": b"a"})

    unpacked = unpack_archive(content, temp_root=tmp_path, filename="../../evil.zip")

    assert unpacked.archive_path == unpacked.work_dir / "evil.zip"


def test_unpacked_archive_removes_working_directory(tmp_path: Path) -> None:
    content = build_archive({"proj/a.txt": b"a"})

    with unpacked_archive(content, temp_root=tmp_path) as unpacked:
        assert unpacked.work_dir.exists()

    assert not unpacked.work_dir.exists()
    assert list(tmp_path.iterdir()) == []


def test_corrupt_archive_raises_and_cleans_up(tmp_path: Path) -> None:
    with pytest.raises(ArchiveError):
        unpack_archive(b"this is not a zip file", temp_root=tmp_path)

    assert list(tmp_path.iterdir()) == []


def test_members_escaping_the_working_directory_are_refused(tmp_path: Path) -> None:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("../../outside.txt", b"nope")

    with pytest.raises(ArchiveError):
        unpack_archive(buffer.getvalue(), temp_root=tmp_path / "work")

    assert not (tmp_path / "outside.txt").exists()
