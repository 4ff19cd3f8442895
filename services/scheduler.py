#Description: Background scheduler driving the price update, announcement, expiry and summary jobs.
import time

from apscheduler.schedulers.background import BackgroundScheduler

from utils.logging import logger
from utils.config import settings
from services.ingestion import IngestionService

_scheduler: BackgroundScheduler | None = None

def price_update_job():
    try:
        IngestionService.instance().run_price_update()
    except Exception as e:
        logger.exception(f"Price update job failed: {e}")

def announce_job():
    try:
        IngestionService.instance().run_announcements()
    except Exception as e:
        logger.exception(f"Announcement job failed: {e}")

def expiry_sweep_job():
    try:
        IngestionService.instance().run_expiry_sweep()
    except Exception as e:
        logger.exception(f"Expiry sweep job failed: {e}")

def daily_summary_job():
    try:
        IngestionService.instance().run_daily_summary()
    except Exception as e:
        logger.exception(f"Daily summary job failed: {e}")

def build_scheduler() -> BackgroundScheduler:
    sched = BackgroundScheduler(timezone=settings.MARKET_TIMEZONE)
    # job guards in IngestionService skip overlapping ticks
    sched.add_job(price_update_job, "interval", seconds=settings.PRICE_UPDATE_INTERVAL_SECONDS,
                  id="price_update_job", max_instances=1, coalesce=True)
    sched.add_job(announce_job, "interval", seconds=settings.ANNOUNCE_INTERVAL_SECONDS,
                  id="announce_job", max_instances=1, coalesce=True)
    sched.add_job(expiry_sweep_job, "cron", hour=settings.EXPIRY_SWEEP_HOUR, minute=settings.EXPIRY_SWEEP_MINUTE,
                  id="expiry_sweep_job", max_instances=1, coalesce=True)
    sched.add_job(daily_summary_job, "cron", day_of_week="mon-fri",
                  hour=settings.DAILY_SUMMARY_HOUR, minute=settings.DAILY_SUMMARY_MINUTE,
                  id="daily_summary_job", max_instances=1, coalesce=True)
    return sched

def start_scheduler():
    global _scheduler
    if _scheduler:
        return _scheduler
    _scheduler = build_scheduler()
    _scheduler.start()
    logger.info("Scheduler started.")
    return _scheduler

def get_scheduler():
    return _scheduler

def shutdown_scheduler():
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped.")


if __name__ == "__main__":
    from models.db import init_db

    init_db()
    start_scheduler()
    try:
        while True:
            time.sleep(1)
    except (KeyboardInterrupt, SystemExit):
        shutdown_scheduler()
