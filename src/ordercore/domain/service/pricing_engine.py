"""Domain service: Pricing.

Pure and side-effect free.  Prices always come from the lines resolved
inside the active transaction, never from anything the client sent.

Tax is a flat rate on the pre-discount subtotal; this is a deliberate
simplification (no per-region tax tables).
"""

from __future__ import annotations

from decimal import Decimal

from ordercore.domain.model.coupon import Coupon, DiscountType
from ordercore.domain.model.pricing import PricedLine, PricingResult
from ordercore.domain.model.value_objects import Money

TAX_RATE = Decimal("0.10")
FLAT_SHIPPING_FEE = Money(Decimal("9.99"))
FREE_SHIPPING_THRESHOLD = Money(Decimal("50.00"))


class PricingEngine:

    def __init__(
        self,
        tax_rate: Decimal = TAX_RATE,
        flat_shipping_fee: Money = FLAT_SHIPPING_FEE,
        free_shipping_threshold: Money = FREE_SHIPPING_THRESHOLD,
    ) -> None:
        self._tax_rate = tax_rate
        self._flat_shipping_fee = flat_shipping_fee
        self._free_shipping_threshold = free_shipping_threshold

    def price(self, lines: list[PricedLine], coupon: Coupon | None = None) -> PricingResult:
        """Compute subtotal, discount, tax, shipping and total."""
        subtotal = Money.zero()
        for line in lines:
            subtotal = subtotal + line.line_total

        discount = self.discount_for(coupon, subtotal)
        tax = subtotal.scaled(self._tax_rate).rounded()

        free_shipping = coupon is not None and coupon.grants_free_shipping
        if free_shipping or subtotal > self._free_shipping_threshold:
            shipping = Money.zero()
        else:
            shipping = self._flat_shipping_fee

        # discount <= subtotal, so this never goes negative
        total = (subtotal - discount + tax + shipping).rounded()
        return PricingResult(
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            shipping=shipping,
            total=total,
            free_shipping=free_shipping,
        )

    @staticmethod
    def discount_for(coupon: Coupon | None, amount: Money) -> Money:
        """Discount a coupon grants on *amount*, capped so it never exceeds it."""
        if coupon is None:
            return Money.zero()

        if coupon.discount_type == DiscountType.PERCENTAGE:
            discount = amount.scaled(coupon.discount_value / Decimal(100))
            if coupon.max_discount_amount is not None:
                discount = discount.min(coupon.max_discount_amount)
        elif coupon.discount_type == DiscountType.FIXED:
            discount = Money(coupon.discount_value, amount.currency)
        else:
            # free shipping is applied by zeroing shipping instead
            discount = Money.zero()

        return discount.min(amount).rounded()
