"""Domain records passed between the scraping pipeline, the reconciler and
the product store.

These are plain immutable values; the ORM rows in :mod:`pricetrack.models`
are converted to and from them at the store boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True, slots=True)
class DatedPrice:
    """A single point of a product's price history."""

    date: datetime
    price: Decimal


@dataclass(frozen=True, slots=True)
class ProductRecord:
    """Canonical product as persisted.

    ``price_history`` is append-only and ordered by insertion, which is also
    chronological order.  ``last_updated`` tracks the latest accepted price
    change, ``last_checked`` the latest scrape that saw the product.
    """

    id: str
    name: str
    size: str
    current_price: Decimal
    category: tuple[str, ...]
    source_site: str
    price_history: tuple[DatedPrice, ...]
    last_updated: datetime
    last_checked: datetime
    unit_price: Optional[Decimal] = None
    unit_name: Optional[str] = None
    original_unit_quantity: Optional[Decimal] = None


@dataclass(frozen=True, slots=True)
class RawListing:
    """Raw text fragments read from one product card.

    Every field is the text exactly as found on the page (or ``None`` when
    the element was missing); nothing here has been cleaned yet.
    """

    name: Optional[str] = None
    image_url: Optional[str] = None
    raw_size: Optional[str] = None
    dollars: Optional[str] = None
    cents: Optional[str] = None
    price_text: Optional[str] = None
    unit_price_text: Optional[str] = None
    category: Optional[str] = None
    source_url: Optional[str] = None
