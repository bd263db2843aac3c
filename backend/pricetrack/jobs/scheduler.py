"""APScheduler job configuration for automated scraping."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from pricetrack.config import get_settings

logger = logging.getLogger(__name__)

SCRAPE_JOB_ID = "scrape_paknsave"


async def scrape_all_pages():
    """Scrape every page in the URL list once."""
    from pricetrack.scrapers import paknsave

    if not paknsave.claim_scrape():
        logger.warning("A scrape is already running, skipping the scheduled scrape.")
        return

    logger.info("Starting scheduled scrape")
    try:
        stats = await paknsave.run_scrape()
    except Exception:
        logger.exception("Scheduled scrape failed.")
        return
    finally:
        paknsave.release_scrape()

    logger.info(
        "Scheduled scrape completed: %d pages, %d new products, %d price updates.",
        len(stats),
        sum(s.new for s in stats),
        sum(s.price_updated for s in stats),
    )


def start_scheduler() -> AsyncIOScheduler:
    """Configure and start the APScheduler."""
    settings = get_settings()
    scheduler = AsyncIOScheduler()

    # Daily full scrape, prices change overnight
    scheduler.add_job(
        scrape_all_pages,
        CronTrigger(hour=settings.scrape_hour, minute=0),
        id=SCRAPE_JOB_ID,
        name="Scrape Pak'nSave category pages",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    return scheduler
