"""Normalization and reconciliation services."""

from pricetrack.services.overrides import OverrideResolver, SizeAndOverride
from pricetrack.services.reconciler import Reconciliation, ReconciliationEngine, UpsertResponse
from pricetrack.services.size_normalizer import SizeNormalizer
from pricetrack.services.unit_price import UnitPrice, UnitPriceDeriver
from pricetrack.services.validator import ProductValidator

__all__ = [
    "OverrideResolver",
    "ProductValidator",
    "Reconciliation",
    "ReconciliationEngine",
    "SizeAndOverride",
    "SizeNormalizer",
    "UnitPrice",
    "UnitPriceDeriver",
    "UpsertResponse",
]
