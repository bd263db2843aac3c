"""Reconciliation of freshly scraped products against the stored version.

Each scrape of a product ends in exactly one :class:`UpsertResponse`:

==================  =========================================================
NEW_PRODUCT         nothing stored yet; store the scrape with a one-entry
                    price history
PRICE_UPDATED       price moved by more than the threshold on a new calendar
                    day; append to the history and take the scraped details
NON_PRICE_UPDATED   price unchanged (or same-day change), but descriptive
                    fields differ; take the scraped details, keep the price
ALREADY_UP_TO_DATE  nothing differs; only ``last_checked`` moves
FAILED              the store could not be read or written
==================  =========================================================

At most one history entry is recorded per calendar day (UTC): a second price
seen on the same day is treated as a correction and never becomes a trend
point.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from pricetrack.records import DatedPrice, ProductRecord
from pricetrack.services.product_store import ProductNotFound, ProductStore, StoreError
from pricetrack.services.unit_price import UnitPriceDeriver, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_PRICE_CHANGE_THRESHOLD = Decimal("0.05")

# Fields taken from the scrape whenever the stored product is rewritten
DESCRIPTIVE_FIELDS = (
    "name",
    "size",
    "category",
    "source_site",
    "unit_price",
    "unit_name",
    "original_unit_quantity",
)


class UpsertResponse(enum.Enum):
    NEW_PRODUCT = "new_product"
    PRICE_UPDATED = "price_updated"
    NON_PRICE_UPDATED = "non_price_updated"
    ALREADY_UP_TO_DATE = "already_up_to_date"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Reconciliation:
    """Outcome of one reconciliation and the record to persist (if any)."""

    outcome: UpsertResponse
    product: Optional[ProductRecord]


def _utc_day(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


class ReconciliationEngine:
    """Classifies a scraped record against the stored one and builds the
    next version to persist."""

    def __init__(
        self,
        price_change_threshold=DEFAULT_PRICE_CHANGE_THRESHOLD,
        unit_prices: UnitPriceDeriver | None = None,
    ) -> None:
        self.price_change_threshold = to_decimal(price_change_threshold)
        self.unit_prices = unit_prices or UnitPriceDeriver()

    # ------------------------------------------------------------------
    # Pure classification
    # ------------------------------------------------------------------

    def reconcile(
        self,
        prior: ProductRecord | None,
        scraped: ProductRecord,
        *,
        now: datetime | None = None,
    ) -> Reconciliation:
        """Compare *scraped* with *prior* and return the next version.

        *now* defaults to the scrape timestamp (``scraped.last_checked``).
        """
        now = now or scraped.last_checked

        if prior is None:
            return Reconciliation(UpsertResponse.NEW_PRODUCT, self.new_product(scraped, now))

        last_checked = max(prior.last_checked, now)
        price_changed = (
            abs(scraped.current_price - prior.current_price) > self.price_change_threshold
        )

        if price_changed and not self._recorded_on(prior, now):
            self._log_price_change(prior, scraped)
            updated = replace(
                prior,
                **self._descriptive_fields(scraped),
                current_price=scraped.current_price,
                price_history=prior.price_history
                + (DatedPrice(date=now, price=scraped.current_price),),
                last_updated=now,
                last_checked=last_checked,
            )
            return Reconciliation(UpsertResponse.PRICE_UPDATED, updated)

        descriptive = self._descriptive_fields(scraped, kept_price=prior.current_price)
        if any(getattr(prior, name) != value for name, value in descriptive.items()):
            updated = replace(prior, **descriptive, last_checked=last_checked)
            return Reconciliation(UpsertResponse.NON_PRICE_UPDATED, updated)

        return Reconciliation(
            UpsertResponse.ALREADY_UP_TO_DATE,
            replace(prior, last_checked=last_checked),
        )

    @staticmethod
    def new_product(scraped: ProductRecord, now: datetime) -> ProductRecord:
        return replace(
            scraped,
            price_history=(DatedPrice(date=now, price=scraped.current_price),),
            last_updated=now,
            last_checked=now,
        )

    @staticmethod
    def _recorded_on(prior: ProductRecord, now: datetime) -> bool:
        """True when *prior* already holds a price point for *now*'s day."""
        today = _utc_day(now)
        if _utc_day(prior.last_updated) == today:
            return True
        return bool(prior.price_history) and _utc_day(prior.price_history[-1].date) == today

    def _descriptive_fields(
        self, scraped: ProductRecord, kept_price: Decimal | None = None
    ) -> dict:
        fields = {name: getattr(scraped, name) for name in DESCRIPTIVE_FIELDS}

        # The scraped unit price was computed from a price that is not being
        # accepted; express it against the price that is kept instead.
        if kept_price is not None and kept_price != scraped.current_price:
            unit = self.unit_prices.derive(scraped.size, kept_price)
            fields["unit_price"] = unit.amount if unit else None
            fields["unit_name"] = unit.unit if unit else None
            fields["original_unit_quantity"] = unit.original_quantity if unit else None

        return fields

    @staticmethod
    def _log_price_change(prior: ProductRecord, scraped: ProductRecord) -> None:
        trend = "Decreased" if scraped.current_price < prior.current_price else "Increased"
        logger.info(
            "Price %s: %-40.40s from $%s to $%s",
            trend,
            prior.name,
            prior.current_price,
            scraped.current_price,
        )

    # ------------------------------------------------------------------
    # Store round trip
    # ------------------------------------------------------------------

    async def upsert(self, store: ProductStore, scraped: ProductRecord) -> Reconciliation:
        """Read the stored version, reconcile, and write the result back.

        A missing product takes the NEW_PRODUCT path.  Any other store error
        yields FAILED; nothing is written in that case.
        """
        try:
            prior = await store.read_by_identifier(scraped.id, partition=scraped.name)
        except ProductNotFound:
            prior = None
        except StoreError:
            logger.exception("Store read failed for product %s", scraped.id)
            return Reconciliation(UpsertResponse.FAILED, None)

        result = self.reconcile(prior, scraped)

        try:
            await store.upsert(result.product)
        except StoreError:
            logger.exception("Store upsert failed for product %s", scraped.id)
            return Reconciliation(UpsertResponse.FAILED, None)

        if result.outcome is UpsertResponse.NEW_PRODUCT:
            logger.info(
                "New Product: %-8s | %-40.40s | $ %5s | %s",
                scraped.id,
                scraped.name,
                scraped.current_price,
                scraped.category[-1] if scraped.category else "",
            )
        return result
