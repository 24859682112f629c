import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from core.exceptions import RunLockError
from ingestion.runner import SyncRunner

logger = logging.getLogger(__name__)


class SyncScheduler:
    def __init__(self, interval_hours: int = None):
        self.scheduler = AsyncIOScheduler()
        self.interval_hours = interval_hours or settings.SYNC_INTERVAL_HOURS

    def build_runner(self) -> SyncRunner:
        return SyncRunner()

    async def run_sync_job(self):
        """Job to run one mirror update"""
        logger.info("Scheduler: Starting sync job")
        try:
            runner = self.build_runner()
            await runner.run()
        except RunLockError:
            logger.warning("Scheduler: Previous sync still running, skipping this slot")
        except Exception as e:
            logger.error(f"Scheduler: Sync job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_sync_job,
            trigger=IntervalTrigger(hours=self.interval_hours),
            id="nvd_sync_job",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info(f"Sync scheduler started (every {self.interval_hours}h)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Sync scheduler stopped")
