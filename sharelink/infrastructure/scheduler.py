"""
Interval Scheduler

APScheduler-backed timer running a job at a fixed interval, used for the
expiry sweep and the rate-limit reaper. Jobs run on the scheduler's daemon
threads, never on request threads.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


class IntervalScheduler:
    """Runs ``func`` every ``interval_seconds`` until shut down."""

    def __init__(
        self,
        func: Callable[[], object],
        *,
        interval_seconds: float,
        name: str = "interval-scheduler",
        run_immediately: bool = False,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"Interval must be positive, got {interval_seconds}")
        self.func = func
        self.interval_seconds = interval_seconds
        self.name = name
        self.run_immediately = run_immediately
        self._scheduler = BackgroundScheduler(daemon=True)

    def start(self) -> None:
        if self._scheduler.running:
            return
        job_options = {}
        if self.run_immediately:
            job_options["next_run_time"] = datetime.now(timezone.utc)
        self._scheduler.add_job(
            func=self._run_once,
            trigger="interval",
            seconds=self.interval_seconds,
            id=self.name,
            name=self.name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_options,
        )
        self._scheduler.start()
        logger.debug("Scheduled %s every %ss", self.name, self.interval_seconds)

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def _run_once(self) -> None:
        try:
            self.func()
        except Exception:
            logger.exception("Scheduled job %s failed", self.name)
