from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, cast

import pytest

from depwatch.adapters.scheduler import SWEEP_JOB_ID, ReconcilerScheduler
from depwatch.domain.reconciliation import SweepReport

if TYPE_CHECKING:
    from depwatch.domain.reconciliation import StatusReconciler

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


class CountingReconciler:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls = 0

    def sweep(self, now: datetime | None = None) -> SweepReport:
        self.calls += 1
        if self.fail:
            raise RuntimeError("database unavailable")
        return SweepReport(swept_at=now or NOW)


def _scheduler(reconciler: CountingReconciler, seconds: float = 60) -> ReconcilerScheduler:
    return ReconcilerScheduler(
        cast("StatusReconciler", reconciler), interval=timedelta(seconds=seconds)
    )


def test_run_once_returns_the_sweep_report() -> None:
    reconciler = CountingReconciler()

    report = _scheduler(reconciler).run_once()

    assert report is not None
    assert not report.changed
    assert reconciler.calls == 1


def test_run_once_swallows_sweep_failures(caplog: pytest.LogCaptureFixture) -> None:
    reconciler = CountingReconciler(fail=True)

    assert _scheduler(reconciler).run_once() is None
    assert "Status sweep failed" in caplog.text


@pytest.mark.parametrize("seconds", [0, -5])
def test_non_positive_interval_is_rejected(seconds: float) -> None:
    with pytest.raises(ValueError, match="greater than zero"):
        _scheduler(CountingReconciler(), seconds)


def test_start_registers_a_single_interval_job() -> None:
    scheduler = _scheduler(CountingReconciler(), 3600)

    scheduler.start(run_immediately=False)
    try:
        assert scheduler.running
        jobs = scheduler._scheduler.get_jobs()  # noqa: SLF001
        assert [job.id for job in jobs] == [SWEEP_JOB_ID]
        assert jobs[0].max_instances == 1
        assert jobs[0].coalesce is True
        scheduler.start()
        assert len(scheduler._scheduler.get_jobs()) == 1  # noqa: SLF001
    finally:
        scheduler.shutdown(wait=False)

    assert not scheduler.running
