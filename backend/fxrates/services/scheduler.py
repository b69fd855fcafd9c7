# backend/fxrates/services/scheduler.py
"""
Periodic exchange rate refresh.

Runs ConversionService.refresh_rates() on a crontab schedule (hourly by
default) in a background thread owned by APScheduler. A failed run is
logged and left for the next scheduled run; nothing is retried here.

Manual refreshes (POST /currencies/refresh) go through trigger_now(), so
they share the run lock and the last-run record shown by /health.

Usage:
    scheduler = RateRefreshScheduler(conversion_service, cron="0 * * * *")
    scheduler.start()
    ...
    scheduler.shutdown()
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from fxrates.services.conversion_service import ConversionService
from fxrates.utils.context import clear_correlation_id, get_correlation_id, set_correlation_id
from fxrates.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "refresh_exchange_rates"


@dataclass
class RefreshRun:
    """Outcome of the most recent refresh run."""
    started_at: datetime
    duration_seconds: float
    updated_count: int | None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class RateRefreshScheduler:
    """Owns the background scheduler and the refresh job."""

    def __init__(
            self,
            conversion_service: ConversionService,
            cron: str = "0 * * * *",
            timezone: str = "UTC",
    ) -> None:
        self._conversion_service = conversion_service
        self._trigger = CronTrigger.from_crontab(cron, timezone=timezone)
        self._scheduler = BackgroundScheduler(timezone=timezone)
        self._last_run: RefreshRun | None = None
        self._run_lock = threading.Lock()

    @property
    def last_run(self) -> RefreshRun | None:
        return self._last_run

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        self._scheduler.add_job(
            self.run_refresh,
            self._trigger,
            id=REFRESH_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(f"Rate refresh scheduler started ({self._trigger})")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Rate refresh scheduler stopped")

    def next_run_time(self) -> datetime | None:
        job = self._scheduler.get_job(REFRESH_JOB_ID)
        return job.next_run_time if job else None

    def trigger_now(self) -> RefreshRun:
        """
        Run a refresh immediately in the calling thread.

        Unlike the scheduled job, a failure is recorded and then re-raised so
        the caller (POST /currencies/refresh) can report it.
        """
        logger.info("Manual exchange rate refresh triggered")
        return self._run(raise_errors=True)

    def run_refresh(self) -> RefreshRun:
        """
        One scheduled refresh run. Never raises; the outcome is logged and recorded.

        Scheduler threads get their own correlation ID for the duration of
        the run; a caller that already has one keeps it.
        """
        return self._run(raise_errors=False)

    def status(self) -> dict:
        """Scheduler state for the health endpoint."""
        last_run = self._last_run
        next_run = self.next_run_time()
        return {
            "running": self.running,
            "next_run_time": next_run.isoformat() if next_run else None,
            "last_run": None if last_run is None else {
                "started_at": last_run.started_at.isoformat(),
                "succeeded": last_run.succeeded,
                "updated_count": last_run.updated_count,
                "error": last_run.error,
            },
        }

    def _run(self, raise_errors: bool) -> RefreshRun:
        owns_correlation_id = get_correlation_id() is None
        if owns_correlation_id:
            set_correlation_id(f"refresh-{uuid.uuid4().hex[:12]}")

        try:
            # Manual and scheduled runs never overlap
            with self._run_lock:
                started_at = utc_now()
                start = time.perf_counter()
                logger.info(f"Starting exchange rate refresh at {started_at.isoformat()}")
                try:
                    count = self._conversion_service.refresh_rates()
                except Exception as e:
                    duration = time.perf_counter() - start
                    logger.exception(f"Exchange rate refresh failed after {duration:.2f}s: {e}")
                    self._last_run = RefreshRun(started_at, duration, None, error=str(e))
                    if raise_errors:
                        raise
                else:
                    duration = time.perf_counter() - start
                    logger.info(f"Refreshed {count} exchange rates in {duration:.2f}s")
                    self._last_run = RefreshRun(started_at, duration, count)
                return self._last_run
        finally:
            if owns_correlation_id:
                clear_correlation_id()
