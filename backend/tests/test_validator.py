"""Tests for product sanity bounds."""

from dataclasses import replace
from decimal import Decimal

from conftest import make_record
from pricetrack.services.validator import ProductValidator


class TestProductValidator:
    def setup_method(self):
        self.validator = ProductValidator()
        self.record = make_record()

    def test_valid_product(self):
        assert self.validator.validate(self.record)

    def test_name_length(self):
        assert not self.validator.validate(replace(self.record, name="Egg"))
        assert self.validator.validate(replace(self.record, name="Eggs"))
        assert not self.validator.validate(replace(self.record, name="x" * 101))

    def test_identifier_length(self):
        assert not self.validator.validate(replace(self.record, id="P"))
        assert not self.validator.validate(replace(self.record, id="P" * 21))

    def test_price_bounds(self):
        assert not self.validator.validate(replace(self.record, current_price=Decimal("0")))
        assert not self.validator.validate(replace(self.record, current_price=Decimal("-1")))
        assert self.validator.validate(replace(self.record, current_price=Decimal("999")))
        assert not self.validator.validate(replace(self.record, current_price=Decimal("999.01")))

    def test_malformed_record(self):
        assert not self.validator.validate(object())
