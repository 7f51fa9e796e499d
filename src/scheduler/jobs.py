"""
Scheduler manager for standup jobs.

A single interval tick drives the whole lifecycle, in order:
- Create today's instance for teams whose local start time has arrived
- Open due instances
- Close instances whose response window has expired
"""

import logging
from typing import Optional
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
import pytz

from config import settings
from ..standups.instances import StandupInstanceService, get_instance_service
from ..utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class StandupSchedulerManager:
    """
    Manages the scheduled jobs for standup instances.
    """

    def __init__(self, instance_service: Optional[StandupInstanceService] = None):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.timezone = pytz.timezone(settings.timezone)
        self._instance_service = instance_service

    @property
    def instances(self) -> StandupInstanceService:
        if self._instance_service is None:
            self._instance_service = get_instance_service()
        return self._instance_service

    def start(self) -> None:
        """Start the scheduler with all jobs."""
        self.scheduler = AsyncIOScheduler(timezone=self.timezone)

        self.scheduler.add_job(
            self._collection_sweep_job,
            IntervalTrigger(minutes=settings.collection_sweep_minutes),
            id="collection_sweep",
            name="Standup Collection Sweep",
            replace_existing=True
        )

        self.scheduler.start()
        logger.info(f"Scheduler started: sweep every {settings.collection_sweep_minutes} min")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self.scheduler:
            self.scheduler.shutdown()
            self.scheduler = None
            logger.info("Scheduler stopped")

    async def _collection_sweep_job(self) -> None:
        """Create due instances, open them and close expired ones, all at one instant."""
        now = utc_now()

        try:
            result = await self.instances.create_due_instances(now)
            for team_id, reason in result.failed:
                logger.warning(f"Team {team_id} standup not created: {reason}")
        except Exception as e:
            logger.error(f"Error creating due standup instances: {e}", exc_info=True)

        try:
            await self.instances.open_due_instances(now)
            await self.instances.close_expired_instances(now)
        except Exception as e:
            logger.error(f"Error in collection sweep job: {e}", exc_info=True)

    def trigger_job(self, job_id: str) -> bool:
        """Manually trigger a job."""
        if not self.scheduler:
            return False

        job = self.scheduler.get_job(job_id)
        if job:
            job.modify(next_run_time=datetime.now(self.timezone))
            return True

        return False

    def get_job_status(self) -> dict:
        """Get status of all scheduled jobs."""
        if not self.scheduler:
            return {}

        jobs = {}
        for job in self.scheduler.get_jobs():
            jobs[job.id] = {
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            }

        return jobs


# Singleton instance
scheduler_manager = StandupSchedulerManager()


def get_scheduler_manager() -> StandupSchedulerManager:
    """Get the scheduler manager instance."""
    return scheduler_manager
