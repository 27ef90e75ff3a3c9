"""
APScheduler Configuration

Background job scheduler running inside the API process.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from jelantah.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,
}

scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.SCHEDULER_TIMEZONE
)


async def mark_overdue_bills():
    """Scheduler entry point: run the overdue job in its own session."""
    from jelantah.database import get_db_session
    from jelantah.jobs.overdue_bills import run_overdue_bills_job

    try:
        async with get_db_session() as db:
            result = await run_overdue_bills_job(db)
        logger.info(f"Job 'mark_overdue_bills' completed: {result['overdue_bills']} bill(s) marked overdue")
    except Exception as e:
        logger.error(f"Job 'mark_overdue_bills' failed: {e}")


def start_scheduler():
    """Start the background job scheduler."""
    if not scheduler.running:
        scheduler.add_job(
            mark_overdue_bills,
            'interval',
            minutes=settings.OVERDUE_BILLS_INTERVAL_MINUTES,
            id='mark_overdue_bills',
            name='Mark Overdue Bills',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    jobs = scheduler.get_jobs()
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in jobs
    ]
