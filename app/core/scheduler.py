from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler(
    timezone="UTC",
    job_defaults={
        'coalesce': True,
        'max_instances': 1,
        'misfire_grace_time': 300
    }
)


def job_listener(event):
    if event.exception:
        logger.error(f"Job {event.job_id} failed with exception: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully")


async def run_drift_check_job(service):
    from app.tasks.drift_check import check_maintenance_drift

    logger.info("Starting scheduled maintenance drift check...")
    await check_maintenance_drift(service.reconciler)


def init_scheduler(service):
    interval = settings.DRIFT_CHECK_INTERVAL_MINUTES
    if interval <= 0:
        logger.info("Maintenance drift check disabled")
        return

    scheduler.add_listener(job_listener, EVENT_JOB_ERROR | EVENT_JOB_EXECUTED)

    scheduler.add_job(
        run_drift_check_job,
        trigger=IntervalTrigger(minutes=interval),
        args=[service],
        id='maintenance_drift_check',
        name='Maintenance Drift Check',
        replace_existing=True
    )

    logger.info(f"Scheduler initialized: maintenance drift check every {interval} minutes")


def start_scheduler():
    if not scheduler.running:
        scheduler.start()
        logger.info("Background scheduler started")


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")

