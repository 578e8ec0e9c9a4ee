"""
Cron Scheduler Service using APScheduler.
Runs periodic maintenance jobs such as the solution-cache cleanup.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.base import JobLookupError
from typing import Callable, Dict, List, Optional

from core.logging import get_logger

logger = get_logger(__name__)


def build_cron_trigger(cron_expression: str, timezone: str = "UTC") -> CronTrigger:
    """
    Build a CronTrigger from a 5- or 6-field cron expression.

    6-field format: second minute hour day month weekday
    5-field format: minute hour day month weekday (second=0)
    """
    parts = cron_expression.split()

    if len(parts) >= 6:
        return CronTrigger(
            second=parts[0],
            minute=parts[1],
            hour=parts[2],
            day=parts[3],
            month=parts[4],
            day_of_week=parts[5],
            timezone=timezone
        )

    if len(parts) < 5:
        parts.extend(['*'] * (5 - len(parts)))
    return CronTrigger(
        second='0',
        minute=parts[0],
        hour=parts[1],
        day=parts[2],
        month=parts[3],
        day_of_week=parts[4],
        timezone=timezone
    )


class SweepScheduler:
    """Owns one AsyncIOScheduler for the lifetime of the app."""

    def __init__(self, timezone: str = "UTC"):
        self.timezone = timezone
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the scheduler if not already running. Needs a running event loop."""
        if self.running:
            return
        self._scheduler = AsyncIOScheduler(timezone=self.timezone)
        self._scheduler.start()
        logger.info("[Scheduler] Started")

    def shutdown(self) -> None:
        """Shutdown the scheduler gracefully."""
        if self.running:
            self._scheduler.shutdown(wait=False)
            logger.info("[Scheduler] Shutdown")
        self._scheduler = None

    def register_cron_job(
        self,
        job_id: str,
        cron_expression: str,
        callback: Callable,
        **kwargs
    ) -> str:
        """
        Register a cron job with the scheduler.

        Args:
            job_id: Unique identifier for the job
            cron_expression: 5- or 6-field cron expression
            callback: Async function to call when job fires
            **kwargs: Additional arguments passed to the callback

        Returns:
            The job_id
        """
        if not self.running:
            raise RuntimeError("Scheduler is not running")

        self._scheduler.add_job(
            callback,
            trigger=build_cron_trigger(cron_expression, self.timezone),
            id=job_id,
            replace_existing=True,
            kwargs=kwargs
        )

        logger.info(f"[Scheduler] Registered cron job: {job_id} with expression: {cron_expression}")
        return job_id

    def remove_cron_job(self, job_id: str) -> bool:
        """
        Remove a cron job from the scheduler.

        Returns:
            True if job was removed, False if not found
        """
        if not self.running:
            return False
        try:
            self._scheduler.remove_job(job_id)
            logger.info(f"[Scheduler] Removed cron job: {job_id}")
            return True
        except JobLookupError:
            logger.warning(f"[Scheduler] Job not found: {job_id}")
            return False

    def get_job_info(self, job_id: str) -> Optional[Dict]:
        """
        Get information about a scheduled job.

        Returns:
            Dict with job info or None if not found
        """
        if not self.running:
            return None
        job = self._scheduler.get_job(job_id)
        if job:
            return {
                "id": job.id,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            }
        return None

    def get_all_jobs(self) -> List[Dict]:
        """Get list of all scheduled jobs."""
        if not self.running:
            return []
        return [
            {
                "id": job.id,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            }
            for job in self._scheduler.get_jobs()
        ]
