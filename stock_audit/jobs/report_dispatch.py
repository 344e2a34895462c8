"""
Report Dispatch

Hands accepted report jobs to the external renderer on a one-off scheduler
job, so the request that created the job returns immediately.
"""

import logging
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.base import BaseScheduler

from stock_audit.jobs.scheduler import scheduler as default_scheduler
from stock_audit.schemas.report import ReportJob

logger = logging.getLogger(__name__)

Renderer = Callable[[ReportJob], Awaitable[None]]


async def log_renderer(job: ReportJob) -> None:
    """Default renderer hook: records the hand-off."""
    logger.info(
        f"Report {job.id} handed to renderer: type={job.type.value} format={job.format.value} "
        f"recipients={len(job.recipients)}"
    )


async def _render(renderer: Renderer, job: ReportJob) -> None:
    try:
        await renderer(job)
    except Exception:
        logger.exception(f"Renderer failed for report {job.id}")


class ReportDispatcher:
    """Schedules report rendering without blocking the caller."""

    def __init__(
        self,
        scheduler: Optional[BaseScheduler] = None,
        renderer: Optional[Renderer] = None
    ):
        self.scheduler = scheduler or default_scheduler
        self.renderer = renderer or log_renderer

    def dispatch(self, job: ReportJob) -> str:
        """Queue the job for rendering now. Returns the scheduler job id."""
        scheduled = self.scheduler.add_job(
            _render,
            'date',
            args=[self.renderer, job],
            id=f"report:{job.id}",
            name=f"Render {job.type.value} report",
            replace_existing=True,
        )
        logger.info(f"Report {job.id} queued for rendering")
        return scheduled.id


report_dispatcher = ReportDispatcher()
