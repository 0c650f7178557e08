"""Unit tests for the Product aggregate."""

import pytest

from ordercore.domain.exceptions import (
    InsufficientStockError,
    ValidationError,
    VariantNotFoundError,
)
from ordercore.domain.model.value_objects import Money
from tests.fakes import make_product, make_variant


class TestProductInvariants:

    def test_negative_stock_rejected(self):
        with pytest.raises(ValidationError, match="cannot be negative"):
            make_product(stock=-1)

    def test_negative_variant_stock_rejected(self):
        with pytest.raises(ValidationError, match="cannot be negative"):
            make_product(variants=[make_variant(stock=-2)])


class TestVariants:

    def test_find_variant(self):
        variant = make_variant(id="var-xl")
        product = make_product(variants=[variant])
        assert product.find_variant("var-xl") is variant

    def test_unknown_variant_raises(self):
        product = make_product(variants=[make_variant()])
        with pytest.raises(VariantNotFoundError):
            product.find_variant("missing")

    def test_variant_price_overrides_product_price(self):
        variant = make_variant(price="30.00")
        product = make_product(price="25.00", variants=[variant])
        assert product.unit_price(variant) == Money.of("30.00")

    def test_variant_without_price_uses_product_price(self):
        variant = make_variant(price=None)
        product = make_product(price="25.00", variants=[variant])
        assert product.unit_price(variant) == Money.of("25.00")


class TestAvailability:

    def test_available_when_enough_stock(self):
        make_product(stock=3).ensure_available(3)

    def test_insufficient_product_stock(self):
        with pytest.raises(InsufficientStockError, match="need 4, have 3"):
            make_product(stock=3).ensure_available(4)

    def test_variant_stock_is_also_checked(self):
        variant = make_variant(stock=1)
        product = make_product(stock=10, variants=[variant])
        with pytest.raises(InsufficientStockError, match="variant"):
            product.ensure_available(2, variant)

    def test_product_counter_limits_variant_orders(self):
        variant = make_variant(stock=5)
        product = make_product(stock=2, variants=[variant])
        with pytest.raises(InsufficientStockError, match="need 3, have 2"):
            product.ensure_available(3, variant)
