"""Scrape every page in the URL list once.

Run from the backend directory:
    PYTHONPATH=. python scripts/run_scraper.py [--dry-run] [--reverse]

``--dry-run`` builds and logs products without touching the database.
``--reverse`` scrapes the URL list bottom-up.
"""

import argparse
import asyncio
import logging
import sys

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--dry-run", action="store_true", help="do not write to the database")
    parser.add_argument("--reverse", action="store_true", help="scrape URLs in reverse order")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    from pricetrack.scrapers.paknsave import run_scrape

    args = parse_args(argv)
    if args.dry_run:
        logger.info("(Dry Run mode)")

    stats = await run_scrape(dry_run=args.dry_run, reverse=args.reverse)
    if not stats:
        logger.error("No pages were scraped.")
        return 1

    logger.info(
        "Done: %d pages, %d new products, %d updated prices, %d failed.",
        len(stats),
        sum(s.new for s in stats),
        sum(s.price_updated for s in stats),
        sum(s.failed for s in stats),
    )
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
