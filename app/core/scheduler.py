# File: app/core/scheduler.py
"""
Background job scheduling for ContactHub.

Runs the dispatch job on an APScheduler BackgroundScheduler at a fixed
interval. The job itself never raises; errors are logged and the next
tick tries again.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.db.session import SessionLocal
from app.services.dispatch_service import DispatchService, LoggingMessageSender, MessageSender

logger = logging.getLogger(__name__)

DISPATCH_JOB_ID = "dispatch_due_schedules"

_scheduler: Optional[BackgroundScheduler] = None


def build_dispatch_service(sender: Optional[MessageSender] = None) -> DispatchService:
    return DispatchService(SessionLocal, sender or LoggingMessageSender())


def dispatch_job(service: DispatchService) -> None:
    """Scheduled entry point; returns nothing to APScheduler."""
    try:
        service.run(datetime.now(timezone.utc))
    except Exception as e:
        logger.error(f"Dispatch run failed: {e}", exc_info=True)


def start_scheduler(sender: Optional[MessageSender] = None) -> BackgroundScheduler:
    """
    Start the background scheduler with the dispatch job.

    Args:
        sender: Collaborator used to send messages; logs them if omitted

    Returns:
        The running scheduler
    """
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        return _scheduler

    service = build_dispatch_service(sender)
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        dispatch_job,
        trigger=IntervalTrigger(minutes=settings.DISPATCH_INTERVAL_MINUTES),
        args=[service],
        id=DISPATCH_JOB_ID,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
        replace_existing=True,
    )
    scheduler.start()
    _scheduler = scheduler
    logger.info(
        f"Dispatch scheduler started, running every {settings.DISPATCH_INTERVAL_MINUTES} minutes"
    )
    return scheduler


def shutdown_scheduler() -> None:
    """Stop the background scheduler if it is running."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Dispatch scheduler stopped")
    _scheduler = None
