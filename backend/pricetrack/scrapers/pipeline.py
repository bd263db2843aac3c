"""Per-record pipeline turning raw product cards into reconciled products.

Workflow for each card:
    1. Parse the identifier, name and price out of the raw text.
    2. Resolve manual overrides; a product marked ``invalid`` is dropped.
    3. Normalize the size and derive the unit price.
    4. Validate the record.
    5. Reconcile against the store (skipped in dry-run mode).
    6. Upload the product image for new products.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from pricetrack.config import Settings, get_settings
from pricetrack.records import DatedPrice, ProductRecord, RawListing
from pricetrack.scrapers.urls import UNCATEGORISED
from pricetrack.services.image_uploader import ImageUploader, UploadStatus
from pricetrack.services.overrides import OverrideResolver
from pricetrack.services.product_store import ProductStore, SqlProductStore
from pricetrack.services.reconciler import ReconciliationEngine, UpsertResponse
from pricetrack.services.size_normalizer import SizeNormalizer
from pricetrack.services.unit_price import UnitPriceDeriver
from pricetrack.services.validator import ProductValidator

logger = logging.getLogger(__name__)

_PRICE_RE = re.compile(r"\d+(?:\.\d+)?")


class RecordStatus(enum.Enum):
    RECONCILED = "reconciled"
    DRY_RUN = "dry_run"
    PARSE_FAILED = "parse_failed"
    VALIDATION_FAILED = "validation_failed"
    OVERRIDE_INVALID = "override_invalid"


@dataclass(frozen=True, slots=True)
class PipelineResult:
    status: RecordStatus
    record: ProductRecord | None = None
    outcome: UpsertResponse | None = None
    upload: UploadStatus | None = None


@dataclass
class PageStats:
    """Counters for the records of one scraped page."""

    url: str = ""
    new: int = 0
    price_updated: int = 0
    info_updated: int = 0
    up_to_date: int = 0
    failed: int = 0
    parse_failed: int = 0
    invalid: int = 0
    overridden: int = 0
    dry_run: int = 0
    images_uploaded: int = 0
    images_existing: int = 0
    images_failed: int = 0

    _OUTCOME_FIELDS = {
        UpsertResponse.NEW_PRODUCT: "new",
        UpsertResponse.PRICE_UPDATED: "price_updated",
        UpsertResponse.NON_PRICE_UPDATED: "info_updated",
        UpsertResponse.ALREADY_UP_TO_DATE: "up_to_date",
        UpsertResponse.FAILED: "failed",
    }
    _STATUS_FIELDS = {
        RecordStatus.PARSE_FAILED: "parse_failed",
        RecordStatus.VALIDATION_FAILED: "invalid",
        RecordStatus.OVERRIDE_INVALID: "overridden",
        RecordStatus.DRY_RUN: "dry_run",
    }
    _UPLOAD_FIELDS = {
        UploadStatus.UPLOADED: "images_uploaded",
        UploadStatus.ALREADY_EXISTS: "images_existing",
        UploadStatus.FAILED: "images_failed",
    }

    def record(self, result: PipelineResult) -> None:
        if result.status is RecordStatus.RECONCILED:
            name = self._OUTCOME_FIELDS[result.outcome]
        else:
            name = self._STATUS_FIELDS[result.status]
        setattr(self, name, getattr(self, name) + 1)

        # Greyscale and skipped uploads are not counted
        upload_field = self._UPLOAD_FIELDS.get(result.upload)
        if upload_field is not None:
            setattr(self, upload_field, getattr(self, upload_field) + 1)

    @property
    def total(self) -> int:
        return (
            self.new + self.price_updated + self.info_updated + self.up_to_date
            + self.failed + self.parse_failed + self.invalid + self.overridden
            + self.dry_run
        )

    def summary(self) -> str:
        return (
            f"{self.new} new products, {self.price_updated} updated prices, "
            f"{self.info_updated} updated info, {self.up_to_date} already up-to-date, "
            f"{self.failed} failed, {self.parse_failed + self.invalid + self.overridden} discarded"
        )

    def log_summary(self) -> None:
        logger.info("%s: %s", self.url or "page", self.summary())
        if self.images_uploaded or self.images_existing or self.images_failed:
            logger.info(
                "%s: %d images uploaded, %d already stored, %d image uploads failed",
                self.url or "page",
                self.images_uploaded,
                self.images_existing,
                self.images_failed,
            )


class ScrapingPipeline:
    """Runs raw listings through normalization and reconciliation."""

    def __init__(
        self,
        store: ProductStore | None = None,
        *,
        settings: Settings | None = None,
        normalizer: SizeNormalizer | None = None,
        unit_prices: UnitPriceDeriver | None = None,
        overrides: OverrideResolver | None = None,
        validator: ProductValidator | None = None,
        engine: ReconciliationEngine | None = None,
        uploader: ImageUploader | None = None,
        dry_run: bool = False,
    ) -> None:
        self.settings = settings or get_settings()
        self.dry_run = dry_run
        self.normalizer = normalizer or SizeNormalizer()
        self.unit_prices = unit_prices or UnitPriceDeriver()
        self.overrides = (
            overrides if overrides is not None
            else OverrideResolver.from_file(self.settings.overrides_file)
        )
        self.validator = validator or ProductValidator()
        self.engine = engine or ReconciliationEngine(
            self.settings.price_change_threshold, self.unit_prices
        )
        self.store = store if store is not None or dry_run else SqlProductStore()
        self.uploader = uploader if uploader is not None else ImageUploader(self.settings)

    # ------------------------------------------------------------------
    # Record processing
    # ------------------------------------------------------------------

    async def process(
        self,
        raw: RawListing,
        stats: PageStats | None = None,
        *,
        now: datetime | None = None,
    ) -> PipelineResult:
        """Process one raw listing and count its outcome in *stats*."""
        result = await self._process(raw, now or datetime.now(timezone.utc))
        if stats is not None:
            stats.record(result)
        return result

    async def _process(self, raw: RawListing, now: datetime) -> PipelineResult:
        identifier = self.identifier_from_image_url(raw.image_url)
        name = self.clean_product_name(raw.name or "")
        price = self.parse_price(raw.dollars, raw.cents, raw.price_text)
        if identifier is None or not name or price is None:
            logger.warning(
                "Could not parse product card: %s on %s",
                raw.name or raw.image_url,
                raw.source_url or "unknown page",
            )
            return PipelineResult(RecordStatus.PARSE_FAILED)

        override = self.overrides.resolve(identifier)
        if override.invalid:
            logger.info("Product %s is marked invalid in the override table", identifier)
            return PipelineResult(RecordStatus.OVERRIDE_INVALID)

        record = self.build_record(
            raw,
            identifier=identifier,
            name=name,
            price=price,
            now=now,
            size_override=override.size,
            category_override=override.category,
        )

        if not self.validator.validate(record):
            logger.info(
                "Discarded invalid product: %s | %.40s | $%s",
                record.id,
                record.name,
                record.current_price,
            )
            return PipelineResult(RecordStatus.VALIDATION_FAILED, record)

        if record.size == "":
            logger.debug("Unknown size for %s %s", record.id, record.name)

        if self.dry_run:
            logger.info(
                "%9s | %-40.40s | %-8s | $%5s | %s",
                record.id,
                record.name,
                record.size,
                record.current_price,
                f"{record.unit_price}/{record.unit_name}" if record.unit_price else "",
            )
            return PipelineResult(RecordStatus.DRY_RUN, record)

        reconciliation = await self.engine.upsert(self.store, record)
        upload = None
        if reconciliation.outcome is not UpsertResponse.FAILED and (
            reconciliation.outcome is UpsertResponse.NEW_PRODUCT
            or self.settings.always_upload_images
        ):
            upload = await self._upload_image(raw, record)

        return PipelineResult(
            RecordStatus.RECONCILED,
            reconciliation.product or record,
            reconciliation.outcome,
            upload,
        )

    def build_record(
        self,
        raw: RawListing,
        *,
        identifier: str,
        name: str,
        price: Decimal,
        now: datetime,
        size_override: str | None = None,
        category_override: str | None = None,
    ) -> ProductRecord:
        """Assemble the scraped record with normalized size and unit price."""
        size = self.normalizer.normalize(
            raw.raw_size,
            raw.unit_price_text,
            price,
            name=name,
            override=size_override,
        )
        unit = self.unit_prices.derive(size, price)
        category = category_override or raw.category or UNCATEGORISED

        return ProductRecord(
            id=identifier,
            name=name,
            size=size,
            current_price=price,
            category=(category,),
            source_site=self.settings.source_site,
            price_history=(DatedPrice(date=now, price=price),),
            last_updated=now,
            last_checked=now,
            unit_price=unit.amount if unit else None,
            unit_name=unit.unit if unit else None,
            original_unit_quantity=unit.original_quantity if unit else None,
        )

    async def _upload_image(self, raw: RawListing, record: ProductRecord) -> UploadStatus:
        hires = self.hires_image_url(raw.image_url)
        if hires is None:
            logger.debug("No hi-res image available for %s", record.id)
            return UploadStatus.SKIPPED
        status = await self.uploader.upload(hires, record.id, record.name)
        if status is UploadStatus.FAILED:
            logger.warning("Image upload failed for %s %s", record.id, record.name)
        return status

    async def close(self) -> None:
        await self.uploader.close()

    # ------------------------------------------------------------------
    # Parsing helpers
    # ------------------------------------------------------------------

    @staticmethod
    def parse_price(
        dollars: str | None,
        cents: str | None = None,
        price_text: str | None = None,
    ) -> Decimal | None:
        """Build a ``Decimal`` price from dollar and cent fragments.

        Falls back to the first number in *price_text*, e.g. ``"$3.65 ea"``.
        """
        dollars_digits = re.sub(r"\D", "", dollars or "")
        cents_digits = re.sub(r"\D", "", cents or "")
        if dollars_digits and cents_digits:
            text = f"{dollars_digits}.{cents_digits}"
        else:
            match = _PRICE_RE.search((price_text or "").replace(",", ""))
            if match is None:
                return None
            text = match.group(0)
        try:
            return Decimal(text)
        except InvalidOperation:
            return None

    @staticmethod
    def identifier_from_image_url(image_url: str | None) -> str | None:
        """``.../200x200/5022829.png`` -> ``P5022829``."""
        if not image_url:
            return None
        filename = image_url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
        stem = filename.split(".", 1)[0]
        return f"P{stem}" if stem else None

    @staticmethod
    def hires_image_url(image_url: str | None) -> str | None:
        if not image_url or "200x200" not in image_url:
            return None
        return image_url.replace("200x200", "master")

    @staticmethod
    def clean_product_name(name: str) -> str:
        """Normalize whitespace of a product name."""
        return " ".join(name.split())
