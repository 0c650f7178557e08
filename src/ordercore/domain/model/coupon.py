"""Coupon aggregate and its append-only usage records.

A coupon's ``used_count`` only ever grows, and only through a successful
redemption.  Eligibility checks run in a fixed order and the first
failing check decides the error code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from ordercore.domain.exceptions import CouponRejectedError, ValidationError
from ordercore.domain.model.value_objects import Money

CODE_PATTERN = re.compile(r"^[A-Z0-9_-]+$")


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "freeShipping"


class CouponCheck:
    """Error codes for failed eligibility checks, in evaluation order."""

    NOT_STARTED = "COUPON_NOT_STARTED"
    EXPIRED = "COUPON_EXPIRED"
    LIMIT_REACHED = "COUPON_LIMIT_REACHED"
    USER_LIMIT_REACHED = "USER_LIMIT_REACHED"
    MINIMUM_NOT_MET = "MINIMUM_NOT_MET"
    CATEGORY_NOT_APPLICABLE = "CATEGORY_NOT_APPLICABLE"
    PRODUCT_NOT_APPLICABLE = "PRODUCT_NOT_APPLICABLE"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


@dataclass
class Coupon:
    id: str
    code: str
    description: str
    discount_type: DiscountType
    discount_value: Decimal
    min_order_amount: Money | None = None
    max_discount_amount: Money | None = None
    max_uses: int | None = None
    max_uses_per_user: int | None = None
    start_date: datetime | None = None
    expiry_date: datetime | None = None
    applicable_categories: list[str] = field(default_factory=list)
    applicable_products: list[str] = field(default_factory=list)
    is_active: bool = True
    used_count: int = 0

    # --- Factory --------------------------------------------------------------

    @staticmethod
    def create(
        id: str,
        code: str,
        description: str,
        discount_type: DiscountType,
        discount_value: Decimal,
        min_order_amount: Money | None = None,
        max_discount_amount: Money | None = None,
        max_uses: int | None = None,
        max_uses_per_user: int | None = None,
        start_date: datetime | None = None,
        expiry_date: datetime | None = None,
        applicable_categories: list[str] | None = None,
        applicable_products: list[str] | None = None,
        is_active: bool = True,
    ) -> Coupon:
        """Create a new coupon definition, enforcing all invariants."""
        normalized = normalize_code(code)
        if not normalized or not CODE_PATTERN.match(normalized):
            raise ValidationError(
                "Code must be uppercase alphanumeric with hyphens/underscores"
            )
        if not description or not description.strip():
            raise ValidationError("Coupon description is required")
        if discount_value < 0:
            raise ValidationError("Discount value cannot be negative")
        if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
            raise ValidationError("Percentage discount cannot exceed 100%")
        for label, limit in (("maxUses", max_uses), ("maxUsesPerUser", max_uses_per_user)):
            if limit is not None and limit < 1:
                raise ValidationError(f"{label} must be at least 1")
        if start_date and expiry_date and expiry_date <= start_date:
            raise ValidationError("Expiry date must be after start date")

        return Coupon(
            id=id,
            code=normalized,
            description=description.strip(),
            discount_type=discount_type,
            discount_value=discount_value,
            min_order_amount=min_order_amount,
            max_discount_amount=max_discount_amount,
            max_uses=max_uses,
            max_uses_per_user=max_uses_per_user,
            start_date=start_date,
            expiry_date=expiry_date,
            applicable_categories=list(applicable_categories or []),
            applicable_products=list(applicable_products or []),
            is_active=is_active,
        )

    # --- Eligibility ----------------------------------------------------------

    @property
    def grants_free_shipping(self) -> bool:
        return self.discount_type == DiscountType.FREE_SHIPPING

    def check_eligibility(
        self,
        order_total: Money,
        user_usage_count: int = 0,
        category_ids: set[str] | None = None,
        product_ids: set[str] | None = None,
        now: datetime | None = None,
    ) -> None:
        """Run every check in order; raise on the first failure."""
        at = now or datetime.now(timezone.utc)
        if self.start_date and self.start_date > at:
            raise CouponRejectedError(
                "This coupon is not yet active", code=CouponCheck.NOT_STARTED
            )
        if self.expiry_date and self.expiry_date < at:
            raise CouponRejectedError(
                "This coupon has expired", code=CouponCheck.EXPIRED
            )
        self.check_usage_limits(user_usage_count)
        if self.min_order_amount and order_total < self.min_order_amount:
            raise CouponRejectedError(
                f"Minimum order amount of {self.min_order_amount} required",
                code=CouponCheck.MINIMUM_NOT_MET,
            )
        if self.applicable_categories:
            if not set(self.applicable_categories) & (category_ids or set()):
                raise CouponRejectedError(
                    "This coupon is not applicable to the selected category",
                    code=CouponCheck.CATEGORY_NOT_APPLICABLE,
                )
        if self.applicable_products:
            if not set(self.applicable_products) & (product_ids or set()):
                raise CouponRejectedError(
                    "This coupon is not applicable to any products in your cart",
                    code=CouponCheck.PRODUCT_NOT_APPLICABLE,
                )

    def check_usage_limits(self, user_usage_count: int = 0) -> None:
        """Global and per-user limits; re-run at redemption time."""
        if self.max_uses is not None and self.used_count >= self.max_uses:
            raise CouponRejectedError(
                "This coupon has reached its usage limit",
                code=CouponCheck.LIMIT_REACHED,
            )
        if self.max_uses_per_user is not None and user_usage_count >= self.max_uses_per_user:
            raise CouponRejectedError(
                "You have already used this coupon the maximum number of times",
                code=CouponCheck.USER_LIMIT_REACHED,
            )


@dataclass(frozen=True)
class CouponUsage:
    """One redemption of a coupon against an order. Never mutated."""

    id: str | None
    coupon_id: str
    order_id: str
    user_id: str | None
    discount_amount: Money
    applied_at: datetime
    user_email: str | None = None
