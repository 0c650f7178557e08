"""Application service: coupon validation and redemption.

Validation runs before the customer confirms the final price; redemption
re-checks the usage limits inside a transaction at commit time, which
closes the race between the two.  Redemption can run in its own unit of
work or inside the caller's (order placement does the latter).
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from ordercore.application.dto import CouponValidationDTO, CouponValidationRequest
from ordercore.application.retry import RetryPolicy, run_with_retry
from ordercore.domain.exceptions import CouponNotFoundError
from ordercore.domain.model.coupon import Coupon, CouponUsage, DiscountType
from ordercore.domain.model.value_objects import Money
from ordercore.domain.repository.unit_of_work import UnitOfWork, UnitOfWorkFactory
from ordercore.domain.service.pricing_engine import PricingEngine

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CouponRedemptionManager:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        retry_policy: RetryPolicy | None = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._uow_factory = uow_factory
        self._retry_policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._sleep = sleep

    # --- Validation -----------------------------------------------------------

    def validate(self, request: CouponValidationRequest) -> CouponValidationDTO:
        """Check a code against an order total without consuming a use."""
        order_total = Money.of(request.order_total)
        with self._uow_factory() as uow:
            coupon = self.check_for_order(
                uow,
                code=request.code,
                order_total=order_total,
                user_id=request.user_id,
                category_ids={request.category_id} if request.category_id else set(),
                product_ids=set(request.product_ids or []),
            )
        discount = PricingEngine.discount_for(coupon, order_total)
        return CouponValidationDTO.from_coupon(coupon, discount)

    def check_for_order(
        self,
        uow: UnitOfWork,
        code: str,
        order_total: Money,
        user_id: str | None,
        category_ids: set[str],
        product_ids: set[str],
    ) -> Coupon:
        """Resolve *code* and run every eligibility check, in order."""
        coupon = uow.coupons.find_active_by_code(code)
        if coupon is None:
            raise CouponNotFoundError("Invalid or expired coupon code")

        user_usage = 0
        if user_id and coupon.max_uses_per_user is not None:
            user_usage = uow.coupons.count_usage(coupon.id, user_id)

        coupon.check_eligibility(
            order_total=order_total,
            user_usage_count=user_usage,
            category_ids=category_ids,
            product_ids=product_ids,
            now=self._clock(),
        )
        return coupon

    # --- Redemption -----------------------------------------------------------

    def redeem(
        self,
        coupon_id: str,
        order_id: str,
        user_id: str | None,
        discount_amount: Decimal | str,
        user_email: str | None = None,
    ) -> CouponUsage:
        """Consume one use of a coupon in its own transaction."""
        discount = Money.of(discount_amount)

        def attempt() -> CouponUsage:
            with self._uow_factory() as uow:
                coupon = uow.coupons.get_by_id(coupon_id)
                if coupon is None or not coupon.is_active:
                    raise CouponNotFoundError(f"Coupon {coupon_id} not found")
                usage = self.redeem_within(
                    uow, coupon, order_id, user_id, discount, user_email=user_email
                )
                uow.commit()
                return usage

        usage = run_with_retry(
            attempt, self._retry_policy, f"Redeem coupon {coupon_id}", sleep=self._sleep
        )
        logger.info("Coupon %s redeemed for order %s", coupon_id, order_id)
        return usage

    def redeem_within(
        self,
        uow: UnitOfWork,
        coupon: Coupon,
        order_id: str,
        user_id: str | None,
        discount: Money,
        user_email: str | None = None,
    ) -> CouponUsage:
        """Re-check limits, bump ``used_count`` and record the usage.

        Nothing is visible until *uow* commits.
        """
        user_usage = uow.coupons.count_usage(coupon.id, user_id) if user_id else 0
        coupon.check_usage_limits(user_usage)
        uow.coupons.increment_used_count(coupon.id)
        return uow.coupons.add_usage(
            CouponUsage(
                id=None,
                coupon_id=coupon.id,
                order_id=order_id,
                user_id=user_id,
                discount_amount=discount,
                applied_at=self._clock(),
                user_email=user_email,
            )
        )

    # --- Administration -------------------------------------------------------

    def create_coupon(
        self,
        code: str,
        description: str,
        discount_type: DiscountType,
        discount_value: Decimal,
        **constraints,
    ) -> Coupon:
        with self._uow_factory() as uow:
            coupon = Coupon.create(
                id=uow.coupons.next_id(),
                code=code,
                description=description,
                discount_type=discount_type,
                discount_value=discount_value,
                **constraints,
            )
            uow.coupons.add(coupon)
            uow.commit()
        logger.info("Coupon %s created", coupon.code)
        return coupon

    def usage_history(self, code: str) -> list[CouponUsage]:
        with self._uow_factory() as uow:
            coupon = uow.coupons.find_by_code(code)
            if coupon is None:
                raise CouponNotFoundError(f"Coupon {code} not found")
            return uow.coupons.list_usage(coupon.id)
