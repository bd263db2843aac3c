"""Sanity bounds a product must satisfy before it may be stored."""

import logging
from decimal import Decimal

logger = logging.getLogger(__name__)

NAME_LENGTH = (4, 100)
ID_LENGTH = (2, 20)
MAX_PRICE = Decimal("999")


class ProductValidator:
    """Rejects records whose name, identifier or price is out of range."""

    @staticmethod
    def validate(product) -> bool:
        try:
            if not NAME_LENGTH[0] <= len(product.name) <= NAME_LENGTH[1]:
                logger.debug("Invalid name length for %r", product.name)
                return False
            if not ID_LENGTH[0] <= len(product.id) <= ID_LENGTH[1]:
                logger.debug("Invalid identifier length for %r", product.id)
                return False
            price = Decimal(str(product.current_price))
            if price <= 0 or price > MAX_PRICE:
                logger.debug("Price %s out of range for %s", price, product.id)
                return False
        except Exception:
            # Missing or malformed fields count as invalid
            return False
        return True
