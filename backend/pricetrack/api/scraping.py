"""API routes for manual scraping triggers."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from pydantic import BaseModel

from pricetrack.config import get_settings
from pricetrack.jobs.scheduler import SCRAPE_JOB_ID
from pricetrack.scrapers.paknsave import (
    claim_scrape,
    release_scrape,
    run_scrape,
    scrape_in_progress,
)

router = APIRouter(prefix="/scraping", tags=["scraping"])

logger = logging.getLogger(__name__)

_state: dict = {
    "last_started": None,
    "last_finished": None,
    "last_pages": 0,
}


class ScrapeResponse(BaseModel):
    status: str
    dry_run: bool
    message: str


async def _background_scrape(dry_run: bool, reverse: bool) -> None:
    try:
        stats = await run_scrape(dry_run=dry_run, reverse=reverse)
        _state["last_pages"] = len(stats)
        logger.info(
            "Background scrape finished: %d pages, %d products.",
            len(stats),
            sum(s.total for s in stats),
        )
    except Exception:
        logger.exception("Background scrape failed.")
    finally:
        release_scrape()
        _state["last_finished"] = datetime.now(timezone.utc)


@router.post("/trigger", response_model=ScrapeResponse)
async def trigger_scraping(
    background_tasks: BackgroundTasks,
    dry_run: bool = False,
    reverse: bool = False,
):
    """Trigger a full scrape in the background.

    The scraping runs asynchronously -- this endpoint returns immediately.
    """
    if not claim_scrape():
        raise HTTPException(status_code=409, detail="A scrape is already running.")

    _state["last_started"] = datetime.now(timezone.utc)
    background_tasks.add_task(_background_scrape, dry_run, reverse)

    return ScrapeResponse(
        status="started",
        dry_run=dry_run,
        message="Scraping started in background.",
    )


@router.get("/status")
async def scraping_status(request: Request):
    """Get the current status of the scheduler and the last manual run."""
    settings = get_settings()

    result = {
        "scheduler_enabled": settings.scheduler_enabled,
        "scrape_hour": settings.scrape_hour,
        "running": scrape_in_progress(),
        "last_started": _state["last_started"],
        "last_finished": _state["last_finished"],
        "last_pages": _state["last_pages"],
        "next_run": None,
    }

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        job = scheduler.get_job(SCRAPE_JOB_ID)
        if job is not None and job.next_run_time is not None:
            result["next_run"] = job.next_run_time.isoformat()

    return result
