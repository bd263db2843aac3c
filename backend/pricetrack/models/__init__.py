"""SQLAlchemy models."""

from pricetrack.models.product import PricePoint, Product

__all__ = [
    "PricePoint",
    "Product",
]
