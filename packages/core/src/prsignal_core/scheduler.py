"""Fixed-period job runner for the worker process.

Each job runs on its own period, independently of the others. Jobs run
sequentially in the scheduler's thread; a job that raises is logged and
rescheduled like any other.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

logger = logging.getLogger(__name__)


class Job(Protocol):
    def execute(self, now: datetime): ...


@dataclass
class ScheduledJob:
    name: str
    period_seconds: float
    job: Job
    next_run: datetime | None = None  # None = run on the first tick

    def is_due(self, now: datetime) -> bool:
        return self.next_run is None or now >= self.next_run


class Scheduler:
    def __init__(self, jobs: list[ScheduledJob]):
        self.jobs = jobs
        self._stop = threading.Event()

    def run_pending(self, now: datetime) -> list[str]:
        """Run every due job once; return the names of the jobs that ran."""
        ran = []
        for scheduled in self.jobs:
            if not scheduled.is_due(now):
                continue
            logger.debug("Running job %s", scheduled.name)
            try:
                scheduled.job.execute(now)
            except Exception:
                logger.exception("Job %s failed", scheduled.name)
            scheduled.next_run = now + timedelta(seconds=scheduled.period_seconds)
            ran.append(scheduled.name)
        return ran

    def run_forever(self, tick_seconds: float = 1.0) -> None:
        logger.info("Scheduler started with jobs: %s", ", ".join(j.name for j in self.jobs))
        while not self._stop.is_set():
            self.run_pending(datetime.now(timezone.utc))
            self._stop.wait(tick_seconds)
        logger.info("Scheduler stopped")

    def stop(self) -> None:
        self._stop.set()
