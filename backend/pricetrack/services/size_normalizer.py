"""Canonical package size derivation.

Shelf labels are inconsistent: ``"2l"``, ``"4 x 107mL"``, ``"6pack 330ml"``,
``"ea"`` or nothing at all.  :class:`SizeNormalizer` turns that text into a
single human-readable size such as ``"2L"``, ``"428mL"`` or ``"350g"``.

Precedence, highest first:

1. a manual override from the override table;
2. the raw size text, when it actually describes a size;
3. a size back-computed from the per-unit price label
   (``$10.00/1kg`` at $3.50 -> ``350g``);
4. a size embedded in the product name;
5. the raw text as-is, or ``""`` when it is only a placeholder like ``"ea"``.
"""

from __future__ import annotations

import logging
import re
from decimal import ROUND_HALF_UP, Decimal

from pricetrack.services.unit_price import CENT, format_quantity, to_decimal

logger = logging.getLogger(__name__)

_NUMBER = r"(\d+(?:\.\d+)?)"
_UNIT = r"(kg|g|ml|l)"

_MULTIPLIER_RE = re.compile(rf"{_NUMBER}\s*x\s*{_NUMBER}\s*{_UNIT}\b", re.IGNORECASE)
_PACK_FIRST_RE = re.compile(rf"(\d+)\s*pack\s+{_NUMBER}\s*{_UNIT}\b", re.IGNORECASE)
_PACK_LAST_RE = re.compile(
    rf"{_NUMBER}\s*{_UNIT}\s+(?:each\s+)?(\d+)\s*pack\b", re.IGNORECASE
)
_SIZE_RE = re.compile(rf"{_NUMBER}\s*{_UNIT}\b", re.IGNORECASE)
_UNIT_PRICE_RE = re.compile(
    rf"\$?\s*{_NUMBER}\s*/\s*(\d+(?:\.\d+)?)?\s*{_UNIT}\b", re.IGNORECASE
)
_COUNT_ONLY_RE = re.compile(r"^\d+\s*(?:pk|pack|ea|each)?$", re.IGNORECASE)

# Name-embedded sizes, matched against the lower-cased product name
_NAME_MULTIPLIER_RE = re.compile(r"(\d+)\s?x\s?(\d+)\s?(g|kg|l|ml)\b")
_NAME_PACK_LAST_RE = re.compile(r"(\d+)\s?(l|ml)\s(\d+)\s?pack\b")
_NAME_PACK_FIRST_RE = re.compile(r"(\d+)\s?pack\s(\d+)\s?(l|ml)\b")
_NAME_SIZE_RE = re.compile(r"\d+(?:\.\d+)?(?:g|kg|l|ml)\b")

_PLACEHOLDERS = {"", "ea", "each", "pk", "pack"}
_LOOSE_WEIGHT = {"kg", "per kg"}


def canonical_unit(token: str) -> str:
    """``l`` -> ``L``; ``g``/``kg`` lower-case; ``ml`` keeps a written ``mL``."""
    lowered = token.lower()
    if lowered == "l":
        return "L"
    if lowered == "ml":
        return "mL" if token == "mL" else "ml"
    return lowered


class SizeNormalizer:
    """Derives a canonical size string from raw scraped text."""

    @staticmethod
    def is_size(text: str | None) -> bool:
        """True when *text* contains a quantity with a weight/volume unit."""
        if not text:
            return False
        return text.strip().lower() in _LOOSE_WEIGHT or _SIZE_RE.search(text) is not None

    @staticmethod
    def is_placeholder(text: str | None) -> bool:
        """True for non-size tokens such as ``ea``, ``pk`` or a bare count."""
        cleaned = (text or "").strip().lower()
        return cleaned in _PLACEHOLDERS or _COUNT_ONLY_RE.match(cleaned) is not None

    def normalize(
        self,
        raw_size: str | None,
        unit_price_text: str | None = None,
        current_price=None,
        *,
        name: str | None = None,
        override: str | None = None,
    ) -> str:
        """Return the canonical size, ``""`` when it cannot be determined."""
        if override and override.strip():
            return override.strip()

        raw = " ".join((raw_size or "").split())
        if self.is_size(raw):
            return self.canonicalise(raw)

        derived = self.size_from_unit_price(unit_price_text, current_price)
        if derived:
            logger.debug("Derived size %s from unit price '%s'", derived, unit_price_text)
            return derived

        if name:
            from_name = self.extract_from_name(name)
            if from_name:
                return from_name

        return "" if self.is_placeholder(raw) else raw

    def canonicalise(self, raw: str) -> str:
        """Collapse multiplier/pack notation and fix unit casing."""
        if raw.lower() in _LOOSE_WEIGHT:
            return raw.lower()

        if match := _MULTIPLIER_RE.search(raw):
            total = Decimal(match.group(1)) * Decimal(match.group(2))
            return format_quantity(total) + canonical_unit(match.group(3))

        if match := _PACK_FIRST_RE.search(raw):
            total = Decimal(match.group(1)) * Decimal(match.group(2))
            return format_quantity(total) + canonical_unit(match.group(3))

        if match := _PACK_LAST_RE.search(raw):
            total = Decimal(match.group(1)) * Decimal(match.group(3))
            return format_quantity(total) + canonical_unit(match.group(2))

        return _SIZE_RE.sub(lambda m: m.group(1) + canonical_unit(m.group(2)), raw)

    def size_from_unit_price(self, unit_price_text: str | None, current_price) -> str | None:
        """Back-compute the pack size from a ``$<amount>/<qty><unit>`` label.

        ``$0.89/100g`` at $2.00 -> ``(2.00 / 0.89) * 100`` -> ``225g``.
        """
        price = to_decimal(current_price)
        if not unit_price_text or price is None or price <= 0:
            return None

        match = _UNIT_PRICE_RE.search(unit_price_text.replace(",", ""))
        if match is None:
            return None

        unit_amount = Decimal(match.group(1))
        per_quantity = Decimal(match.group(2)) if match.group(2) else Decimal(1)
        if unit_amount <= 0 or per_quantity <= 0:
            return None

        total = price / unit_amount * per_quantity
        return self._readable(total, canonical_unit(match.group(3)))

    @staticmethod
    def _readable(total: Decimal, unit: str) -> str:
        whole = Decimal(1)
        if unit.lower() in ("g", "ml"):
            return format_quantity(total.quantize(whole, rounding=ROUND_HALF_UP)) + unit

        if total < 1:
            sub_unit = "g" if unit == "kg" else "ml"
            grams = (total * 1000).quantize(whole, rounding=ROUND_HALF_UP)
            return format_quantity(grams) + sub_unit

        return format_quantity(total.quantize(CENT, rounding=ROUND_HALF_UP)) + unit

    def extract_from_name(self, product_name: str) -> str:
        """Pull a size out of a product name.

        ``"Anchor Blue Milk Powder 1kg"`` -> ``"1kg"``; multiplier and pack
        names are totalled into kg/L (``"4 x 40ml"`` -> ``"0.16L"``).
        """
        name = (product_name or "").lower()

        if match := _NAME_MULTIPLIER_RE.search(name):
            total = Decimal(match.group(1)) * Decimal(match.group(2))
            return self._standardise(total, match.group(3))

        if match := _NAME_PACK_LAST_RE.search(name):
            total = Decimal(match.group(1)) * Decimal(match.group(3))
            return self._standardise(total, match.group(2))

        if match := _NAME_PACK_FIRST_RE.search(name):
            total = Decimal(match.group(1)) * Decimal(match.group(2))
            return self._standardise(total, match.group(3))

        if match := _NAME_SIZE_RE.search(name):
            return match.group(0).replace("l", "L").replace("mL", "ml")

        return ""

    @staticmethod
    def _standardise(total: Decimal, unit: str) -> str:
        if unit == "g":
            total, unit = total / 1000, "kg"
        elif unit == "ml":
            total, unit = total / 1000, "L"
        elif unit == "l":
            unit = "L"
        return format_quantity(total.quantize(CENT, rounding=ROUND_HALF_UP)) + unit
