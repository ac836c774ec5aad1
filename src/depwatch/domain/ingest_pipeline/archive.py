"""Store an uploaded archive in a private working directory and extract it."""

from __future__ import annotations

import logging
import shutil
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from depwatch.domain.errors import ArchiveError
from depwatch.domain.model import new_id

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)

DEFAULT_ARCHIVE_NAME = "event.zip"


@dataclass(frozen=True, slots=True)
class UnpackedArchive:
    """An archive extracted into ``{temp_root}/{uuid}/``."""

    temp_root: Path
    work_dir: Path
    archive_path: Path

    def files(self) -> list[Path]:
        """Every extracted file, in sorted order, without the archive itself."""

        return sorted(
            path
            for path in self.work_dir.rglob("*")
            if path.is_file() and path != self.archive_path
        )


def _safe_name(filename: str | None) -> str:
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    return name or DEFAULT_ARCHIVE_NAME


def _extract(archive_path: Path, work_dir: Path) -> None:
    resolved_root = work_dir.resolve()
    with zipfile.ZipFile(archive_path) as archive:
        for member in archive.infolist():
            target = (work_dir / member.filename).resolve()
            if not target.is_relative_to(resolved_root):
                raise ArchiveError(f"archive member escapes working directory: {member.filename}")
        archive.extractall(work_dir)


def unpack_archive(
    content: bytes, *, temp_root: Path, filename: str | None = None
) -> UnpackedArchive:
    """Write ``content`` under a fresh working directory and extract it there."""

    work_dir = temp_root / str(new_id())
    work_dir.mkdir(parents=True, exist_ok=False)
    archive_path = work_dir / _safe_name(filename)
    try:
        archive_path.write_bytes(content)
        _extract(archive_path, work_dir)
    except (OSError, zipfile.BadZipFile) as exc:
        shutil.rmtree(work_dir, ignore_errors=True)
        raise ArchiveError(f"could not unpack archive {archive_path.name}: {exc}") from exc
    except ArchiveError:
        shutil.rmtree(work_dir, ignore_errors=True)
        raise
    log.debug("Unpacked %s into %s", archive_path.name, work_dir)
    return UnpackedArchive(temp_root=temp_root, work_dir=work_dir, archive_path=archive_path)


@contextmanager
def unpacked_archive(
    content: bytes, *, temp_root: Path, filename: str | None = None
) -> Iterator[UnpackedArchive]:
    """Unpack ``content`` for the duration of the block, then remove the working directory."""

    unpacked = unpack_archive(content, temp_root=temp_root, filename=filename)
    try:
        yield unpacked
    finally:
        shutil.rmtree(unpacked.work_dir, ignore_errors=True)
