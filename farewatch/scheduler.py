"""
APScheduler setup: a single interval job runs the monitoring check cycle.

The browser pool, notifier and chart renderer are created once by the app and
handed to start_scheduler(); every cycle opens its own database session.
"""

import logging
import os
import signal
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.memory import MemoryJobStore

from farewatch.database import SessionLocal
from farewatch.exceptions import InfrastructureFault
from farewatch.scrapers.browser import BrowserPool
from farewatch.services.chart import ChartRenderer
from farewatch.services.monitoring_service import build_monitoring_service
from farewatch.services.notification import TelegramNotifier
from farewatch.config import get_settings

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None

settings = get_settings()

# Collaborators shared by every cycle
_pool: Optional[BrowserPool] = None
_notifier: Optional[TelegramNotifier] = None
_chart_renderer: Optional[ChartRenderer] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the global scheduler instance."""
    global scheduler
    if scheduler is None:
        tz = os.environ.get('TZ', 'UTC')
        logger.info(f"Scheduler using timezone: {tz}")

        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            timezone=tz
        )
        _setup_scheduled_jobs()

    return scheduler


def _setup_scheduled_jobs():
    """Setup the periodic price check, first run right away."""
    scheduler.add_job(
        run_check_cycle,
        trigger=IntervalTrigger(minutes=settings.check_interval_minutes),
        id='price_check',
        name='Price Check Cycle',
        replace_existing=True,
        max_instances=1,
        next_run_time=datetime.now(scheduler.timezone),
    )
    logger.info(f"Scheduled jobs configured: price check every {settings.check_interval_minutes} minutes")


def _request_restart():
    """Ask the host process to terminate so its supervisor restarts it."""
    os.kill(os.getpid(), signal.SIGTERM)


async def run_check_cycle():
    """Check all monitored trips and car rentals once."""
    if _pool is None:
        logger.error("Check cycle skipped: browser pool not configured")
        return

    logger.info("Starting price check cycle")
    db = SessionLocal()

    try:
        service = build_monitoring_service(db, _pool, _notifier, _chart_renderer)
        summary = await service.run_check_cycle()

        failed = summary.trips_failed + summary.cars_failed
        marker = "✅" if failed == 0 else "❌"
        logger.info(
            f"{marker} Check cycle complete: {summary.trips_checked} trips, "
            f"{summary.cars_checked} car rentals, {failed} failures, "
            f"{summary.alerts_sent} alerts"
        )

    except InfrastructureFault as e:
        logger.critical(f"❌ Browser infrastructure failure, requesting restart: {e}")
        _request_restart()

    except Exception as e:
        logger.error(f"Error in check cycle: {e}")

    finally:
        db.close()


def start_scheduler(
    pool: BrowserPool,
    notifier: Optional[TelegramNotifier] = None,
    chart_renderer: Optional[ChartRenderer] = None,
):
    """Start the scheduler (call this from FastAPI startup)."""
    global _pool, _notifier, _chart_renderer
    _pool = pool
    _notifier = notifier
    _chart_renderer = chart_renderer

    scheduler_instance = get_scheduler()

    if not scheduler_instance.running:
        scheduler_instance.start()
        logger.info("APScheduler started successfully")

        for job in scheduler_instance.get_jobs():
            logger.info(f"Next '{job.name}': {job.next_run_time}")
    else:
        logger.warning("Scheduler already running")


def stop_scheduler():
    """Stop the scheduler (call this from FastAPI shutdown)."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
        scheduler = None


def get_scheduler_status() -> dict:
    """Get scheduler status for the health endpoint."""
    if scheduler is None or not scheduler.running:
        return {
            "running": False,
            "jobs": [],
            "next_run": None
        }

    jobs = []
    next_run = None

    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        })
        if job.next_run_time and (next_run is None or job.next_run_time < next_run):
            next_run = job.next_run_time

    return {
        "running": True,
        "jobs": jobs,
        "next_run": next_run.isoformat() if next_run else None
    }
