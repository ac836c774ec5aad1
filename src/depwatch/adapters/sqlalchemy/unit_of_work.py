"""Session lifecycle for the SQLAlchemy adapter.

``startup`` binds one engine per process and migrates it to the latest revision.
Every ``SqlAlchemyIngestUnitOfWork`` then owns one session for the duration of a
``with`` block: nothing is written unless ``commit`` is called, and an exception
leaving the block rolls the session back before it is closed.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from depwatch.adapters.sqlalchemy.mappings import start_mappers
from depwatch.adapters.sqlalchemy.migrations import upgrade_head
from depwatch.adapters.sqlalchemy.repositories import (
    SqlAlchemyDatasetRepository,
    SqlAlchemyDatasourceEventRepository,
    SqlAlchemyDatasourceRepository,
    SqlAlchemyPackageRepository,
)
from depwatch.config import get_database_config
from depwatch.domain.ports.unit_of_work import IngestRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the adapter is used before ``startup`` or configured twice."""


class _Binding:
    """The process-wide engine and the session factory bound to it."""

    __slots__ = ("engine", "sessions")

    def __init__(self) -> None:
        self.engine: Engine | None = None
        self.sessions: sessionmaker[Session] | None = None

    def bind(self, engine: Engine) -> None:
        self.engine = engine
        self.sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def release(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.sessions = None


_BINDING = _Binding()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Bind the adapter to ``engine`` (or one built from configuration) and migrate it."""

    if _BINDING.engine is not None and not force:
        raise StartupError("SQLAlchemy adapter already started; pass force=True to rebind")

    if engine is None:
        engine = create_engine(database_uri or get_database_config().uri, future=True)
    log.info("Starting storage on %s", engine.url.render_as_string(hide_password=True))
    start_mappers()
    upgrade_head(engine=engine)
    _BINDING.bind(engine)
    return engine


def configured_engine() -> Engine | None:
    return _BINDING.engine


def is_started() -> bool:
    return _BINDING.engine is not None


def shutdown() -> None:
    """Dispose the bound engine; ``startup`` may be called again afterwards."""

    _BINDING.release()


class SqlAlchemyIngestUnitOfWork:
    """Dataset, datasource, event and package repositories sharing one session."""

    def __init__(self) -> None:
        if _BINDING.sessions is None:
            raise StartupError(
                "SQLAlchemy adapter not started. Call "
                "depwatch.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        self._sessions = _BINDING.sessions
        self._session: Session | None = None
        self._repositories: IngestRepositories | None = None

    def __enter__(self) -> SqlAlchemyIngestUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already in use")
        session = self._sessions()
        self._session = session
        self._repositories = IngestRepositories(
            datasets=SqlAlchemyDatasetRepository(session),
            datasources=SqlAlchemyDatasourceRepository(session),
            events=SqlAlchemyDatasourceEventRepository(session),
            packages=SqlAlchemyPackageRepository(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._session

    @property
    def repositories(self) -> IngestRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from depwatch.domain.ports.unit_of_work import IngestUnitOfWork

    _uow_check: IngestUnitOfWork = SqlAlchemyIngestUnitOfWork()
