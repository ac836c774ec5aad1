"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from depwatch.adapters.datafiles import classify_data_file, parse_data_file
from depwatch.adapters.rpc import RpcDispatcher, register_input_routes
from depwatch.adapters.scheduler import ReconcilerScheduler
from depwatch.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyIngestUnitOfWork,
    is_started,
    startup,
)
from depwatch.config import get_reconciler_config, get_service_config
from depwatch.domain.ingestion import IngestionService, IngestRequest
from depwatch.domain.ports.unit_of_work import IngestUnitOfWork
from depwatch.domain.reconciliation import StatusReconciler

if TYPE_CHECKING:
    from datetime import datetime

    from depwatch.config import ReconcilerConfig, ServiceConfig
    from depwatch.domain.ingestion import IngestResponse
    from depwatch.domain.ports.messaging import ResponsePublisher
    from depwatch.domain.reconciliation import SweepReport

UnitOfWorkFactory = Callable[[], IngestUnitOfWork]


log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def build_ingestion_service(
    *,
    config: ServiceConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> IngestionService:
    """Wire the ingestion service to the configured storage and data file adapters."""

    _ensure_started()
    return IngestionService(
        config=config or get_service_config(),
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyIngestUnitOfWork,
        classifier=classify_data_file,
        parser=parse_data_file,
    )


def ingest_event(
    *,
    identifier: str,
    archive: bytes,
    filename: str | None = None,
    config: ServiceConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> IngestResponse:
    service = build_ingestion_service(config=config, unit_of_work_factory=unit_of_work_factory)
    log.info("Ingesting event %s (%d archive bytes)", identifier, len(archive))
    response = service.ingest(
        IngestRequest(identifier=identifier, archive=archive, filename=filename)
    )
    log.info(
        f"Finished ingesting event: code={response.code}, txid={response.txid}, "
        f"message={response.message}"
    )
    return response


def build_status_reconciler(
    *,
    config: ReconcilerConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> StatusReconciler:
    _ensure_started()
    effective_config = config or get_reconciler_config()
    return StatusReconciler(
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyIngestUnitOfWork,
        grace_window=effective_config.grace_window,
    )


def reconcile_statuses(
    *,
    config: ReconcilerConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    now: datetime | None = None,
) -> SweepReport:
    """Run one reconciliation sweep."""

    reconciler = build_status_reconciler(config=config, unit_of_work_factory=unit_of_work_factory)
    return reconciler.sweep(now)


def build_reconciler_scheduler(
    *,
    config: ReconcilerConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ReconcilerScheduler:
    effective_config = config or get_reconciler_config()
    reconciler = build_status_reconciler(
        config=effective_config, unit_of_work_factory=unit_of_work_factory
    )
    return ReconcilerScheduler(reconciler, interval=effective_config.interval)


def build_rpc_dispatcher(
    *,
    publisher: ResponsePublisher,
    config: ServiceConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> RpcDispatcher:
    """Return a dispatcher with the input routes registered."""

    effective_config = config or get_service_config()
    service = build_ingestion_service(
        config=effective_config, unit_of_work_factory=unit_of_work_factory
    )
    dispatcher = RpcDispatcher(service_name=effective_config.service_name, publisher=publisher)
    register_input_routes(dispatcher, service)
    return dispatcher
