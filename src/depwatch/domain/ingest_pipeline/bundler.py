"""Regroup the loose files of an unpacked archive into per-project bundles."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from depwatch.domain.ingest_pipeline.data_files import DataFile, is_complete_bundle

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable
    from pathlib import Path

    from depwatch.domain.ports.classification import FileClassifier

log = logging.getLogger(__name__)


def project_name_for(path: Path, temp_root: Path) -> str | None:
    """Return the project segment of ``{temp_root}/{uuid}/{project}/.../{file}``.

    Paths too short to carry a project segment, or outside ``temp_root``, give ``None``.
    """

    try:
        parts = path.relative_to(temp_root).parts
    except ValueError:
        return None
    if len(parts) < 3:
        return None
    return parts[1]


def bundle_files(
    paths: Iterable[Path],
    *,
    temp_root: Path,
    classifier: FileClassifier,
    exclude: Collection[Path] = (),
) -> dict[str, list[DataFile]]:
    """Group classified files by project, keeping only complete bundles.

    Files are visited in sorted order, so the same tree always gives the same mapping.
    An incomplete bundle is dropped with a warning and does not affect other projects.
    """

    projects: dict[str, list[DataFile]] = {}
    buffer: list[DataFile] = []
    current: str | None = None

    def flush() -> None:
        if current is None:
            return
        if is_complete_bundle(buffer):
            projects.setdefault(current, []).extend(buffer)
        else:
            log.warning(
                "refusing to process data for project: %s because the bundle is malformed",
                current,
            )

    for path in sorted(paths):
        if path in exclude:
            continue
        project = project_name_for(path, temp_root)
        if project is None:
            log.debug("Skipping %s: no project segment", path)
            continue
        if project != current:
            flush()
            buffer = []
            current = project
        file_type = classifier(path)
        if file_type is None:
            continue
        buffer.append(DataFile(path=path, file_type=file_type, project_name=project))

    flush()
    return projects
