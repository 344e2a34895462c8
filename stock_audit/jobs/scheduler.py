"""
APScheduler Configuration

In-process scheduler that runs report rendering off the request path.
Report jobs are one-off 'date' jobs; nothing recurring is registered.
"""

import logging
from typing import Dict, List, Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from stock_audit.config import settings

logger = logging.getLogger(__name__)

# Report descriptors hold the preview in memory, so jobs are not persisted
scheduler = AsyncIOScheduler(
    jobstores={'default': MemoryJobStore()},
    executors={'default': AsyncIOExecutor()},
    job_defaults={
        'max_instances': 1,
        # A report queued during a busy loop still renders if it starts late
        'misfire_grace_time': 300,
    },
    timezone=settings.SCHEDULER_TIMEZONE
)


def start_scheduler():
    """Start the scheduler on the running event loop."""
    if scheduler.running:
        return
    scheduler.start()
    logger.info(f"Report scheduler started (timezone={settings.SCHEDULER_TIMEZONE})")


def shutdown_scheduler():
    """Stop the scheduler after running renders finish; queued renders are not run."""
    if not scheduler.running:
        return
    pending = len(scheduler.get_jobs())
    scheduler.shutdown(wait=True)
    logger.info(f"Report scheduler stopped; {pending} queued jobs were not run")


def get_job_status() -> List[Dict[str, Optional[str]]]:
    """Pending report jobs, for the health endpoint."""
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in scheduler.get_jobs()
    ]
