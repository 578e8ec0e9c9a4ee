"""Expired-entry cleanup for the solution cache.

Runs on the cron schedule registered by the app lifespan and on demand
from the admin routes. All configuration from Settings (environment variables).
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TYPE_CHECKING

from constants import CLEANUP_JOB_ID, OP_CLEANUP
from core.logging import get_logger

if TYPE_CHECKING:
    from core.config import Settings
    from core.cache import SolutionCacheStore
    from services.scheduler import SweepScheduler
    from services.solutions.statistics import CacheStatistics

logger = get_logger(__name__)


class CleanupService:
    """Sweeps expired cache entries and remembers the last run."""

    def __init__(
        self,
        store: "SolutionCacheStore",
        statistics: "CacheStatistics",
        settings: "Settings",
        scheduler: Optional["SweepScheduler"] = None,
    ):
        self.store = store
        self.statistics = statistics
        self.settings = settings
        self.scheduler = scheduler
        self.last_cleanup: Optional[Dict[str, Any]] = None

    async def run_once(self) -> Dict[str, Any]:
        """Sweep expired entries now and record the result.

        Raises:
            CacheStorageError: The sweep could not run
        """
        deleted = await self.store.sweep_expired()
        self.statistics.track(OP_CLEANUP)
        self.last_cleanup = {
            "deletedCount": deleted,
            "timestamp": datetime.fromtimestamp(self.store.clock() / 1000, tz=timezone.utc).isoformat(),
        }
        logger.info("Cache cleanup completed", deleted=deleted)
        return self.last_cleanup

    async def run_scheduled(self) -> None:
        """Scheduler entrypoint; failures are logged, the job keeps firing."""
        try:
            await self.run_once()
        except Exception as e:
            logger.error("Scheduled cache cleanup failed", error=str(e))

    def start(self) -> None:
        """Register the cleanup job and start the scheduler if enabled."""
        if not self.settings.cache_cleanup_enabled or self.scheduler is None:
            logger.info("Scheduled cache cleanup disabled")
            return
        self.scheduler.start()
        self.scheduler.register_cron_job(
            CLEANUP_JOB_ID,
            self.settings.cache_cleanup_cron,
            self.run_scheduled,
        )
        logger.info("Scheduled cache cleanup enabled", cron=self.settings.cache_cleanup_cron)

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown()

    def schedule_info(self) -> Dict[str, Any]:
        job = self.scheduler.get_job_info(CLEANUP_JOB_ID) if self.scheduler else None
        return {
            "enabled": job is not None,
            "schedule": self.settings.cache_cleanup_cron,
            "nextRunTime": job["next_run_time"] if job else None,
            "lastCleanup": self.last_cleanup,
        }
