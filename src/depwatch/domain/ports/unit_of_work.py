"""Transaction boundary shared by ingestion and status reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from depwatch.domain.ports.persistence import (
        DatasetRepository,
        DatasourceEventRepository,
        DatasourceRepository,
        PackageRepository,
    )


@dataclass(frozen=True, slots=True)
class IngestRepositories:
    """Repositories bound to the same transaction."""

    datasets: DatasetRepository
    datasources: DatasourceRepository
    events: DatasourceEventRepository
    packages: PackageRepository


@runtime_checkable
class IngestUnitOfWork(Protocol):
    """One transaction over ``IngestRepositories``.

    Leaving the ``with`` block without ``commit`` discards the work. Leaving it with
    an exception rolls back and lets the exception propagate.
    """

    @property
    def repositories(self) -> IngestRepositories: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
