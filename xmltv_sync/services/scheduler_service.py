"""
Periodic feed ingestion

Runs fetch_and_process on the configured cron schedule (UTC). Missed runs
within the grace period are coalesced into one.
"""
import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from xmltv_sync.config import settings
from xmltv_sync.services.ingest_service import fetch_and_process


logger = logging.getLogger(__name__)

JOB_ID = "feed_ingest"


async def run_scheduled_ingest() -> None:
    logger.info("Scheduled feed ingestion triggered")
    try:
        result = await fetch_and_process()
    except Exception as exc:
        logger.error("Scheduled ingestion raised: %s", exc, exc_info=True)
        return

    if "error" in result:
        logger.error("Scheduled ingestion failed: %s", result["error"])
    elif result.get("status") == "skipped":
        logger.info("Scheduled ingestion skipped: %s", result.get("message"))


class IngestScheduler:
    """Owns the APScheduler instance for the lifetime of the application"""

    def __init__(self, cron: str | None = None, misfire_grace_sec: int | None = None):
        self.cron = cron or settings.epg_fetch_cron
        self.misfire_grace_sec = (
            misfire_grace_sec if misfire_grace_sec is not None else settings.epg_fetch_misfire_grace_sec
        )
        self.scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def start(self) -> None:
        if self.running:
            logger.warning("Scheduler already running")
            return

        try:
            trigger = CronTrigger.from_crontab(self.cron, timezone="UTC")
        except ValueError as exc:
            logger.error("Invalid cron expression '%s': %s", self.cron, exc)
            raise

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.scheduler.add_job(
            run_scheduled_ingest,
            trigger=trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.misfire_grace_sec,
        )
        self.scheduler.start()

        next_run = self.get_next_run_time()
        logger.info("Ingest scheduler started (%s), next run %s", self.cron, next_run or "unknown")

    def shutdown(self) -> None:
        if not self.running:
            return
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        logger.info("Ingest scheduler stopped")

    def get_next_run_time(self) -> datetime | None:
        if self.scheduler is None:
            return None
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def status(self) -> dict:
        """Scheduler state for the health and root endpoints"""
        next_run = self.get_next_run_time()
        return {
            "scheduler_running": self.running,
            "schedule": self.cron,
            "next_fetch": next_run.isoformat() if next_run else None,
        }


ingest_scheduler = IngestScheduler()
