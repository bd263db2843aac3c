"""PriceTrack scraping engine.

Exposes the site scrapers and the shared per-record pipeline.
"""

from pricetrack.scrapers.base import BaseScraper
from pricetrack.scrapers.paknsave import PakNSaveScraper, run_scrape
from pricetrack.scrapers.pipeline import PageStats, ScrapingPipeline

__all__ = [
    "BaseScraper",
    "PageStats",
    "PakNSaveScraper",
    "ScrapingPipeline",
    "run_scrape",
]

# Registry mapping site slugs to their scraper classes.
SCRAPER_REGISTRY: dict[str, type[BaseScraper]] = {
    "paknsave": PakNSaveScraper,
}
