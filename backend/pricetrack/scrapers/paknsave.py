"""Pak'nSave product-card scraper.

Loads every categorised URL from the URL list, reads each product card
into a :class:`RawListing` and hands it to the :class:`ScrapingPipeline`.
"""

from __future__ import annotations

import asyncio
import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from pricetrack.config import Settings, get_settings
from pricetrack.records import RawListing
from pricetrack.scrapers.base import BaseScraper
from pricetrack.scrapers.pipeline import PageStats, ScrapingPipeline
from pricetrack.scrapers.urls import CategorisedURL, parse_url_lines
from pricetrack.services.text_tables import read_lines_from_file

logger = logging.getLogger(__name__)

PRODUCT_CARD = "div.fs-product-card"
PRICE_CENTS = "span.fs-price-lockup__cents"
STORE_NAME = "span.fs-selected-store__name"

# One scrape at a time per process, shared by the scheduler and the API
_scrape_state = {"running": False}


class PakNSaveScraper(BaseScraper):
    """Scraper for paknsave.co.nz category pages."""

    name = "Pak'nSave"
    slug = "paknsave"

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__(settings)
        self.base_url = self.settings.site_url

    async def scrape(
        self,
        urls: list[CategorisedURL],
        pipeline: ScrapingPipeline,
    ) -> list[PageStats]:
        """Scrape every URL in order and return per-page statistics."""
        all_stats: list[PageStats] = []
        page = await self._new_page()

        try:
            await self._select_store(page)

            for i, target in enumerate(urls, start=1):
                logger.info(
                    "Loading page [%d/%d] %s",
                    i,
                    len(urls),
                    target.url.replace("https://www.", ""),
                )
                stats = await self._scrape_page(page, target, pipeline)
                if stats is not None:
                    stats.log_summary()
                    all_stats.append(stats)

                if i < len(urls):
                    await asyncio.sleep(self.settings.seconds_between_pages)
        finally:
            await page.close()

        logger.info(
            "Scraping complete: %d of %d pages, %d products seen.",
            len(all_stats),
            len(urls),
            sum(s.total for s in all_stats),
        )
        return all_stats

    # ------------------------------------------------------------------
    # Store selection
    # ------------------------------------------------------------------

    async def _select_store(self, page: Page) -> None:
        """Open the start page so geolocation picks the nearest store."""
        try:
            await page.goto(self.base_url, wait_until="domcontentloaded")
            await page.wait_for_selector(STORE_NAME)
            store_name = (await page.locator(STORE_NAME).first.inner_text()).strip()
            logger.info("Selected Store: %s", store_name)
        except PlaywrightError:
            logger.warning("Could not confirm the selected store on %s", self.base_url)

    # ------------------------------------------------------------------
    # Category pages
    # ------------------------------------------------------------------

    async def _scrape_page(
        self,
        page: Page,
        target: CategorisedURL,
        pipeline: ScrapingPipeline,
    ) -> PageStats | None:
        try:
            await page.goto(target.url, wait_until="domcontentloaded")
            await page.wait_for_selector(PRICE_CENTS)
        except PlaywrightTimeout:
            logger.error("Unable to load web page - timed out: %s", target.url)
            return None
        except PlaywrightError:
            logger.exception("Unable to load web page: %s", target.url)
            return None

        cards = page.locator(PRODUCT_CARD)
        count = await cards.count()
        logger.info("%d product entries found", count)

        stats = PageStats(url=target.url)
        for index in range(count):
            try:
                raw = await self.read_card(cards.nth(index), target)
                await pipeline.process(raw, stats)
            except Exception:
                logger.exception("Failed to process product card %d on %s", index, target.url)
                stats.failed += 1
        return stats

    async def read_card(self, card: Locator, target: CategorisedURL) -> RawListing:
        """Read the raw text fragments of one product card."""
        return RawListing(
            name=await _attribute(card, "a", "aria-label"),
            image_url=await _attribute(card, "a div div", "data-src-s"),
            raw_size=await _text(card, "p"),
            dollars=await _text(card, ".fs-price-lockup__dollars"),
            cents=await _text(card, ".fs-price-lockup__cents"),
            price_text=await _text(card, ".fs-price-lockup"),
            unit_price_text=await _text(card, ".fs-product-card__price-by-weight"),
            category=target.category,
            source_url=target.url,
        )


async def _text(card: Locator, selector: str) -> str | None:
    element = card.locator(selector).first
    if await element.count() == 0:
        return None
    return (await element.inner_text()).strip()


async def _attribute(card: Locator, selector: str, attribute: str) -> str | None:
    element = card.locator(selector).first
    if await element.count() == 0:
        return None
    return await element.get_attribute(attribute)


# ---------------------------------------------------------------------------
# Entry point shared by the CLI, the scheduler and the API
# ---------------------------------------------------------------------------


def scrape_in_progress() -> bool:
    return _scrape_state["running"]


def claim_scrape() -> bool:
    """Mark a scrape as running; ``False`` if one already is."""
    if _scrape_state["running"]:
        return False
    _scrape_state["running"] = True
    return True


def release_scrape() -> None:
    _scrape_state["running"] = False


def load_urls(settings: Settings, *, reverse: bool = False) -> list[CategorisedURL]:
    lines = read_lines_from_file(settings.urls_file)
    if lines is None:
        return []
    urls = parse_url_lines(
        lines,
        settings.url_should_contain,
        settings.replace_query_params_with,
        settings.page_query_option,
    )
    if reverse:
        urls.reverse()
    return urls


async def run_scrape(
    *,
    dry_run: bool = False,
    reverse: bool = False,
    settings: Settings | None = None,
) -> list[PageStats]:
    """Scrape every URL in the URL list once."""
    settings = settings or get_settings()
    urls = load_urls(settings, reverse=reverse)
    if not urls:
        logger.error("No URLs to scrape in %s", settings.urls_file)
        return []

    logger.info(
        "%d pages to be scraped%s", len(urls), " (dry run)" if dry_run else ""
    )
    pipeline = ScrapingPipeline(settings=settings, dry_run=dry_run)
    try:
        async with PakNSaveScraper(settings) as scraper:
            return await scraper.scrape(urls, pipeline)
    finally:
        await pipeline.close()
