"""
Poll timer for the dispatch loop.

Uses APScheduler to fire the polling cycle on a fixed interval, and lets
callers trigger an extra cycle on demand.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MAX_INSTANCES, JobEvent
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mattermost_rss.config import SchedulerConfig, get_config
from mattermost_rss.logger import get_logger

logger = get_logger(__name__)

POLL_JOB_ID = "poll_feeds"


@dataclass
class JobStatus:
    """Status of the poll job."""

    job_id: str
    name: str
    next_run_time: Optional[datetime]
    is_active: bool
    trigger: str
    runs_count: int = 0
    errors_count: int = 0
    skipped_count: int = 0
    last_run_time: Optional[datetime] = None
    last_error: Optional[str] = None


class PollScheduler:
    """Runs a callback on a fixed interval in a background thread.

    A single worker thread and ``max_instances=1`` guarantee that two
    cycles never run at the same time.
    """

    def __init__(
        self,
        func: Callable[[], object],
        interval: timedelta,
        scheduler_config: Optional[SchedulerConfig] = None,
    ):
        """Initialize poll scheduler.

        Args:
            func: Callback run on every tick
            interval: Time between ticks
            scheduler_config: Timer settings (defaults to the global config)
        """
        config = scheduler_config or get_config().scheduler

        self.func = func
        self.interval = interval
        self.misfire_grace_time = config.misfire_grace_time
        self.coalesce = config.coalesce

        self.scheduler = BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(max_workers=1)},
            timezone=config.timezone,
        )

        self._runs_count = 0
        self._errors_count = 0
        self._skipped_count = 0
        self._last_run_time: Optional[datetime] = None
        self._last_error: Optional[str] = None

        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._on_job_skipped, EVENT_JOB_MAX_INSTANCES)

    def start(self, run_immediately: bool = True) -> None:
        """Start the timer.

        Args:
            run_immediately: Fire the first cycle right away instead of
                after the first interval
        """
        if self.scheduler.running:
            logger.warning("Scheduler is already running")
            return

        job_kwargs = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now(self.scheduler.timezone)

        self.scheduler.add_job(
            func=self.func,
            trigger=IntervalTrigger(seconds=self.interval.total_seconds()),
            id=POLL_JOB_ID,
            name="Poll feeds",
            max_instances=1,
            coalesce=self.coalesce,
            misfire_grace_time=self.misfire_grace_time,
            replace_existing=True,
            **job_kwargs,
        )
        self.scheduler.start()
        logger.info(f"Scheduler started, polling every {self.interval}")

    def stop(self, wait: bool = True) -> None:
        """Stop the timer.

        Args:
            wait: Whether to wait for a running cycle to complete
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")
        else:
            logger.warning("Scheduler is not running")

    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self.scheduler.running

    def trigger_now(self) -> bool:
        """Run a cycle as soon as possible.

        Returns:
            True if the cycle was scheduled
        """
        if not self.scheduler.running:
            logger.warning("Cannot trigger poll: scheduler not running")
            return False

        job = self.scheduler.get_job(POLL_JOB_ID)
        if job is None:
            return False

        job.modify(next_run_time=datetime.now(self.scheduler.timezone))
        logger.info("Poll triggered manually")
        return True

    def get_status(self) -> Optional[JobStatus]:
        """Get status of the poll job.

        Returns:
            JobStatus or None if the job is not scheduled
        """
        job = self.scheduler.get_job(POLL_JOB_ID)
        if job is None:
            return None

        return JobStatus(
            job_id=job.id,
            name=job.name,
            next_run_time=job.next_run_time,
            is_active=job.next_run_time is not None,
            trigger=str(job.trigger),
            runs_count=self._runs_count,
            errors_count=self._errors_count,
            skipped_count=self._skipped_count,
            last_run_time=self._last_run_time,
            last_error=self._last_error,
        )

    def _on_job_executed(self, event: JobEvent) -> None:
        """Handle job executed event."""
        self._runs_count += 1
        self._last_run_time = datetime.now()
        self._last_error = None

    def _on_job_error(self, event: JobEvent) -> None:
        """Handle job error event."""
        self._runs_count += 1
        self._errors_count += 1
        self._last_run_time = datetime.now()
        exception = event.exception
        self._last_error = f"{type(exception).__name__}: {exception}"
        logger.error(f"Poll cycle failed: {self._last_error}")

    def _on_job_skipped(self, event: JobEvent) -> None:
        """Handle a tick that fired while the previous cycle was still running."""
        self._skipped_count += 1
        logger.warning("Previous poll cycle still running, skipping this tick")
