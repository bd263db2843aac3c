"""Per-unit price derivation.

Turns a canonical size string plus an absolute shelf price into a price per
standard unit (kg or L), e.g. ``"2L"`` at $6.50 -> ``3.25/L/2``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Scale of products.original_unit_quantity
QUANTITY_STEP = Decimal("0.001")

_QUANTITY_RE = re.compile(r"(\d+(?:\.\d+)?)\s?(kg|g|ml|l)\b", re.IGNORECASE)
_MULTIPLIER_RE = re.compile(r"(\d+(?:\.\d+)?)\s?x\s?(\d+(?:\.\d+)?)", re.IGNORECASE)
_EACH_PACK_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s?(g|ml)\s+each\s+(\d+)\s?pack", re.IGNORECASE
)

# raw unit -> (standard unit, raw units per standard unit)
_STANDARD_UNITS: dict[str, tuple[str, int]] = {
    "g": ("kg", 1000),
    "kg": ("kg", 1),
    "ml": ("L", 1000),
    "l": ("L", 1),
}


def to_decimal(value) -> Decimal | None:
    """Convert ints, floats and numeric strings to ``Decimal`` via ``str``.

    Going through ``str`` keeps ``3.65`` as ``Decimal('3.65')`` instead of
    the binary-float expansion.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def format_quantity(value: Decimal) -> str:
    """Render a decimal without exponent or trailing zeros (``2.40`` -> ``2.4``)."""
    return format(value.normalize(), "f")


@dataclass(frozen=True, slots=True)
class UnitPrice:
    """Price per standard unit.

    ``amount`` is always expressed per kg or per L.  ``original_quantity`` is
    the pack quantity in the unit it was sold in (``428`` for ``4 x 107mL``).
    """

    amount: Decimal
    unit: str
    original_quantity: Decimal

    def __str__(self) -> str:
        return (
            f"{format_quantity(self.amount)}/{self.unit}/"
            f"{format_quantity(self.original_quantity)}"
        )


class UnitPriceDeriver:
    """Derives a :class:`UnitPrice` from a size string and a price."""

    def derive(self, size: str | None, current_price) -> UnitPrice | None:
        """Return the per-unit price, or ``None`` when *size* has no usable
        quantity and unit."""
        price = to_decimal(current_price)
        if not size or len(size.strip()) < 2 or price is None or price <= 0:
            return None

        text = size.strip()

        # Loose produce sold by weight
        if text.lower() in ("kg", "per kg"):
            return UnitPrice(price.quantize(CENT, rounding=ROUND_HALF_UP), "kg", Decimal(1))

        match = _QUANTITY_RE.search(text)
        if match is None:
            logger.debug("No quantity/unit found in size '%s'", size)
            return None

        quantity = Decimal(match.group(1))
        unit = match.group(2).lower()
        label: str | None = None

        multiplied = _MULTIPLIER_RE.search(text)
        each_pack = _EACH_PACK_RE.search(text)
        if multiplied:
            quantity = Decimal(multiplied.group(1)) * Decimal(multiplied.group(2))
        elif each_pack:
            quantity = Decimal(each_pack.group(1)) * Decimal(each_pack.group(3))
            unit = each_pack.group(2).lower()
            # Multipacks of individually sized items keep the item unit as label
            label = unit

        if quantity <= 0:
            return None

        standard_unit, per_standard = _STANDARD_UNITS[unit]
        amount = (price / (quantity / per_standard)).quantize(CENT, rounding=ROUND_HALF_UP)

        return UnitPrice(
            amount=amount,
            unit=label or standard_unit,
            original_quantity=quantity.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP),
        )
