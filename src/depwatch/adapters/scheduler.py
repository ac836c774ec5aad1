"""Run the status reconciler on a fixed interval with APScheduler."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from datetime import timedelta

    from depwatch.domain.reconciliation import StatusReconciler, SweepReport

log = getLogger(__name__)

SWEEP_JOB_ID: Final[str] = "status-reconciler-sweep"


class ReconcilerScheduler:
    """Background scheduler running at most one sweep at a time.

    Missed runs are coalesced into one, so a slow sweep never queues a backlog.
    """

    def __init__(self, reconciler: StatusReconciler, *, interval: timedelta) -> None:
        if interval.total_seconds() <= 0:
            raise ValueError("reconcile interval must be greater than zero")
        self._reconciler = reconciler
        self._interval = interval
        self._scheduler = BackgroundScheduler(timezone=UTC)

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def run_once(self) -> SweepReport | None:
        try:
            return self._reconciler.sweep()
        except Exception:
            log.exception("Status sweep failed; retrying on the next tick")
            return None

    def start(self, *, run_immediately: bool = True) -> None:
        if self.running:
            return
        # apscheduler pauses jobs added with next_run_time=None
        extra: dict[str, datetime] = {"next_run_time": datetime.now(UTC)} if run_immediately else {}
        self._scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self._interval.total_seconds(), timezone=UTC),
            id=SWEEP_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **extra,
        )
        self._scheduler.start()
        log.info("Reconciler scheduled every %s", self._interval)

    def shutdown(self, *, wait: bool = True) -> None:
        if not self.running:
            return
        self._scheduler.shutdown(wait=wait)
        log.info("Reconciler scheduler stopped")


__all__ = ["SWEEP_JOB_ID", "ReconcilerScheduler"]
