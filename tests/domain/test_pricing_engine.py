"""Unit tests for the PricingEngine domain service."""

from decimal import Decimal

from ordercore.domain.model.coupon import DiscountType
from ordercore.domain.model.pricing import PricedLine
from ordercore.domain.model.value_objects import Money, Quantity
from ordercore.domain.service.pricing_engine import PricingEngine
from tests.fakes import make_coupon


def _line(price: str, qty: int = 1) -> PricedLine:
    return PricedLine(unit_price=Money.of(price), quantity=Quantity(qty))


class TestPricing:

    def test_ten_percent_coupon_on_hundred(self):
        result = PricingEngine().price([_line("100.00")], make_coupon(value="10"))
        assert result.subtotal == Money.of("100.00")
        assert result.discount == Money.of("10.00")
        assert result.tax == Money.of("10.00")
        assert result.shipping == Money.zero()
        assert result.total == Money.of("100.00")

    def test_subtotal_sums_lines(self):
        result = PricingEngine().price([_line("15.00", 3), _line("2.50", 2)])
        assert result.subtotal == Money.of("50.00")

    def test_flat_shipping_at_threshold(self):
        result = PricingEngine().price([_line("50.00")])
        assert result.shipping == Money.of("9.99")
        assert result.total == Money.of("64.99")

    def test_free_shipping_above_threshold(self):
        assert PricingEngine().price([_line("50.01")]).shipping == Money.zero()

    def test_tax_is_computed_before_discount(self):
        coupon = make_coupon(discount_type=DiscountType.FIXED, value="20")
        result = PricingEngine().price([_line("80.00")], coupon)
        assert result.tax == Money.of("8.00")
        assert result.total == Money.of("68.00")

    def test_tax_rounds_half_up(self):
        result = PricingEngine().price([_line("0.05")])
        assert result.tax.amount == Decimal("0.01")
        assert result.total == Money.of("10.05")


class TestDiscounts:

    def test_percentage_capped_by_max_discount(self):
        coupon = make_coupon(value="50", max_discount_amount=Money.of("25.00"))
        result = PricingEngine().price([_line("200.00")], coupon)
        assert result.discount == Money.of("25.00")
        assert result.total == Money.of("195.00")

    def test_fixed_discount_never_exceeds_subtotal(self):
        coupon = make_coupon(discount_type=DiscountType.FIXED, value="30")
        result = PricingEngine().price([_line("20.00")], coupon)
        assert result.discount == Money.of("20.00")
        assert result.total == Money.of("11.99")

    def test_free_shipping_coupon(self):
        coupon = make_coupon(code="FREESHIP", discount_type=DiscountType.FREE_SHIPPING, value="0")
        result = PricingEngine().price([_line("20.00")], coupon)
        assert result.discount == Money.zero()
        assert result.shipping == Money.zero()
        assert result.free_shipping is True
        assert result.total == Money.of("22.00")

    def test_percentage_discount_rounds_half_up(self):
        discount = PricingEngine.discount_for(make_coupon(value="15"), Money.of("0.10"))
        assert discount.amount == Decimal("0.02")

    def test_no_coupon_no_discount(self):
        assert PricingEngine.discount_for(None, Money.of("10")) == Money.zero()


class TestConfiguredEngine:

    def test_custom_rates(self):
        engine = PricingEngine(
            tax_rate=Decimal("0.20"),
            flat_shipping_fee=Money.of("5.00"),
            free_shipping_threshold=Money.of("100.00"),
        )
        result = engine.price([_line("60.00")])
        assert result.tax == Money.of("12.00")
        assert result.shipping == Money.of("5.00")
        assert result.total == Money.of("77.00")

    def test_same_input_same_result(self):
        engine = PricingEngine()
        lines = [_line("19.99", 2), _line("5.01")]
        assert engine.price(lines) == engine.price(lines)
