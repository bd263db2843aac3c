"""Abstract base scraper owning the Playwright browser lifecycle."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, Route, async_playwright

from pricetrack.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Requests not needed to read product cards
EXCLUDED_RESOURCE_TYPES = {"image", "stylesheet", "media", "font", "other"}
EXCLUDED_URL_PARTS = (
    "googleoptimize.com",
    "gtm.js",
    "visitoridentification.js",
    "js-agent.newrelic.com",
    "challenge-platform",
)


class BaseScraper(ABC):
    """Base class every site scraper must extend.

    Subclasses MUST set ``name`` and ``slug`` as class-level attributes and
    implement :meth:`scrape`.
    """

    name: str = ""
    slug: str = ""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._playwright = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    # ------------------------------------------------------------------
    # Playwright browser lifecycle
    # ------------------------------------------------------------------

    async def _launch_browser(self) -> BrowserContext:
        """Launch a Playwright Chromium browser and return a context."""
        if self._context is not None:
            return self._context

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.settings.scraping_headless,
        )
        self._context = await self._browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=(
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
                "AppleWebKit/537.36 (KHTML, like Gecko) "
                "Chrome/124.0.0.0 Safari/537.36"
            ),
            geolocation={
                "latitude": self.settings.geolocation_latitude,
                "longitude": self.settings.geolocation_longitude,
            },
            permissions=["geolocation"],
        )
        self._context.set_default_timeout(self.settings.scraping_timeout)
        return self._context

    async def _new_page(self, *, block_resources: bool = True) -> Page:
        """Create a new browser page, optionally with request filtering."""
        ctx = await self._launch_browser()
        page = await ctx.new_page()
        if block_resources:
            await page.route("**/*", self._filter_request)
        return page

    @staticmethod
    def should_block(url: str, resource_type: str) -> bool:
        """True for ads, trackers and assets the scraper never reads."""
        if resource_type in EXCLUDED_RESOURCE_TYPES:
            return True
        return any(part in url for part in EXCLUDED_URL_PARTS)

    async def _filter_request(self, route: Route) -> None:
        request = route.request
        if self.should_block(request.url, request.resource_type):
            logger.debug("Blocked %s %s %.120s", request.method, request.resource_type, request.url)
            await route.abort()
        else:
            await route.continue_()

    async def _close_browser(self) -> None:
        """Gracefully shut down the browser."""
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    async def scrape(self, *args: Any, **kwargs: Any) -> Any:
        """Run the full scrape cycle for this site."""

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release the browser."""
        await self._close_browser()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
