"""
Scheduler Module

Background job scheduler for automated report generation.
Uses APScheduler to build the daily, weekly and monthly reports once a day
and keep them in the report history.
"""

import os
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.analytics.periods import SHOP_TIMEZONE, shop_now
from app.analytics.report_service import ReportService
from app.services.data_source import get_data_source
from app.services.report_history import get_report_history

logger = logging.getLogger(__name__)

# Configuration from environment
REPORTS_SCHEDULE_ENABLED = os.getenv("REPORTS_SCHEDULE_ENABLED", "true").lower() == "true"
REPORTS_GENERATION_HOUR = int(os.getenv("REPORTS_GENERATION_HOUR", "23"))  # 11 PM shop time

# Create scheduler
scheduler = AsyncIOScheduler()


async def scheduled_report_generation(report_service: Optional[ReportService] = None):
    """Generate all standard reports for today (daily)"""
    now = shop_now()
    logger.info(f"[Scheduler] Generating reports for {now.date().isoformat()}")

    try:
        service = report_service or ReportService(get_data_source())
        reports = await service.generate_all_reports(now)
    except Exception as e:
        logger.error(f"[Scheduler] Report generation failed: {e}")
        return

    get_report_history().record_all(reports, now.date(), now)
    failed = [t.value for t, envelope in reports.items() if envelope.error]
    logger.info(f"[Scheduler] Report generation complete: {len(reports)} reports"
                + (f", with errors in {', '.join(failed)}" if failed else ""))


def start_scheduler():
    """Start the background scheduler"""
    if not REPORTS_SCHEDULE_ENABLED:
        logger.info("[Scheduler] Report generation disabled via REPORTS_SCHEDULE_ENABLED env var")
        return

    logger.info(f"[Scheduler] Starting scheduler with:")
    logger.info(f"  - Report generation: daily at {REPORTS_GENERATION_HOUR}:00 ({SHOP_TIMEZONE})")

    scheduler.add_job(
        scheduled_report_generation,
        CronTrigger(hour=REPORTS_GENERATION_HOUR, minute=0, timezone=SHOP_TIMEZONE),
        id="report_generation",
        name="Daily Report Generation",
        replace_existing=True
    )

    scheduler.start()
    logger.info("[Scheduler] Scheduler started successfully")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("[Scheduler] Scheduler stopped")
