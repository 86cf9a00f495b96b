"""
APScheduler Configuration

Periodic maintenance for the booking engine. The plan-expiry reset is also
applied lazily on every quota read, so the sweep only keeps stored rows tidy
for reporting; bookings stay correct if it never runs.
"""
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import PLAN_SWEEP_ENABLED
from app.services.allocator import get_allocator

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def sweep_expired_plans():
    """
    Hourly job downgrading elevated plans whose paid month has ended.

    Logs the number of profiles reset.
    """
    logger.info("Starting hourly plan expiry sweep")

    try:
        reset_count = await get_allocator().ledger.sweep_expired_plans()
        if reset_count:
            logger.info(f"Plan expiry sweep downgraded {reset_count} consumers")
    except Exception as e:
        logger.error(f"Failed to sweep expired plans: {e}", exc_info=True)


def configure_scheduler():
    """
    Configure APScheduler with all scheduled jobs.

    Jobs:
        - Plan expiry sweep: every hour at :05 (PLAN_SWEEP_ENABLED)
    """
    if not PLAN_SWEEP_ENABLED:
        logger.info("Plan expiry sweep disabled")
        return

    scheduler.add_job(
        sweep_expired_plans,
        trigger=CronTrigger(hour='*', minute=5),
        id='plan_expiry_sweep',
        name='Downgrade Expired Plans',
        replace_existing=True,
        coalesce=True,  # Combine missed runs into single execution
        max_instances=1
    )

    logger.info("Scheduler configured with plan expiry sweep")


def start_scheduler():
    """Start the APScheduler"""
    configure_scheduler()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    """Stop the APScheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
