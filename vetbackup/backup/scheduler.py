"""Recurring backup scheduler."""

from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from vetbackup.config.logging_config import get_logger

logger = get_logger(__name__)

JOB_ID = "scheduled-backup"


class BackupScheduler:
    """Fires a backup job on a cron schedule for the lifetime of the process.

    Only one run is ever in flight: a fire that arrives while the previous
    run is still going is skipped. Failures are the job's business; the
    schedule itself keeps going regardless.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        cron: str = "0 0 * * *",
        timezone: Optional[str] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        """Initialize the scheduler.

        Args:
            job: Coroutine function run on each fire
            cron: Five-field crontab expression
            timezone: Zone the expression is evaluated in (local by default)
            scheduler: Pre-built APScheduler instance
        """
        self.job = job
        self.cron = cron
        self.trigger = CronTrigger.from_crontab(cron, timezone=timezone)
        self._scheduler = scheduler or AsyncIOScheduler()
        self._in_flight = False
        self.runs = 0
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self._scheduler.running

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def next_fire_time(self) -> Optional[datetime]:
        job = self._scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def next_fire_after(self, moment: datetime) -> Optional[datetime]:
        """When the schedule fires next, counting from ``moment``."""
        return self.trigger.get_next_fire_time(None, moment)

    def start(self) -> None:
        """Register the backup job and start the scheduler. Needs a running event loop."""
        if self.running:
            return
        self._scheduler.add_job(
            self.fire,
            self.trigger,
            id=JOB_ID,
            name="Scheduled database backup",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Backup scheduler initialized ({self.cron})", next_fire=str(self.next_fire_time))

    def stop(self) -> None:
        """Cancel the job and shut the scheduler down."""
        if not self.running:
            return
        self._scheduler.remove_all_jobs()
        self._scheduler.shutdown(wait=False)
        logger.info("Backup scheduler stopped")

    async def fire(self) -> bool:
        """Run the job once unless a run is already in progress.

        Returns:
            True if the job ran, False if this fire was skipped
        """
        if self._in_flight:
            self.skipped += 1
            logger.warning("Skipping scheduled backup: previous run still in progress")
            return False

        self._in_flight = True
        try:
            await self.job()
        except Exception as e:
            logger.error(f"Scheduled backup raised: {e}", exc_info=True)
        finally:
            self._in_flight = False
            self.runs += 1
        return True
