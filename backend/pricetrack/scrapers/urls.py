"""Parsing of the URL list that drives a scrape run.

Each line of ``Urls.txt`` holds a category URL optionally followed by
parameters::

    https://www.paknsave.co.nz/shop/category/fresh-foods-and-bakery/dairy--eggs/fresh-milk pages=3
    https://www.paknsave.co.nz/shop/category/pantry/baking category=baking
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

logger = logging.getLogger(__name__)

UNCATEGORISED = "Uncategorised"
MAX_PAGES = 20


@dataclass(frozen=True, slots=True)
class CategorisedURL:
    url: str
    category: str


def derive_category_from_url(url: str) -> str:
    """Return the last path segment of *url*, ignoring the query string.

    ``.../dairy--eggs/fresh-milk?pg=1`` -> ``fresh-milk``.  URLs without a
    path yield ``Uncategorised``.
    """
    path = url.split("?", 1)[0].rstrip("/")
    if "/" not in path:
        return UNCATEGORISED
    return path.rsplit("/", 1)[-1] or UNCATEGORISED


def optimise_query_parameters(url: str, replace_query_params_with: str) -> str:
    """Swap the query string of *url* for *replace_query_params_with*.

    Search URLs keep their query untouched, since the query is the search.
    """
    lowered = url.lower()
    if "search?" in lowered or "f=tags" in lowered or "q=" in lowered:
        return url
    return f"{url.split('?', 1)[0]}?{replace_query_params_with}"


def parse_url_lines(
    lines: Iterable[str],
    url_should_contain: str,
    replace_query_params_with: str,
    query_option_for_each_page: str,
    increment_each_page_by: int = 1,
) -> list[CategorisedURL]:
    """Expand URL-list lines into one :class:`CategorisedURL` per page."""
    categorised: list[CategorisedURL] = []

    for line in lines:
        line = line.strip()
        if not line or line.startswith(("#", "//")):
            continue
        if url_should_contain not in line:
            logger.debug("Skipping line without '%s': %s", url_should_contain, line)
            continue

        url, *params = line.split()
        url = optimise_query_parameters(url, replace_query_params_with)
        category = derive_category_from_url(url)
        num_pages = 1

        for param in params:
            if param.startswith("category="):
                category = param[len("category="):]
            elif param.startswith("pages="):
                try:
                    num_pages = int(param[len("pages="):])
                    if not 1 < num_pages < MAX_PAGES:
                        raise ValueError(param)
                except ValueError:
                    logger.warning("Invalid number of pages: %s", param)
                    num_pages = 1

        for page in range(1, num_pages + 1):
            if page == 1:
                page_url = url
            else:
                # e.g. pg=2, pg=3 ... or with a large step start=32, start=64 ...
                if increment_each_page_by > 1:
                    page_index = increment_each_page_by * (page - 1)
                else:
                    page_index = increment_each_page_by * page
                page_url = f"{url}{query_option_for_each_page}{page_index}"
            categorised.append(CategorisedURL(page_url, category))

    return categorised
