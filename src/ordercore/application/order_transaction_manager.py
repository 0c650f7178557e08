"""Application service: atomic order placement and cancellation.

Placement runs Begin -> ValidateItems -> ComputePricing -> ReserveStock ->
PersistOrder -> Commit inside one unit of work.  A concurrency conflict
at commit restarts the whole sequence from a fresh read; any business
rule failure aborts it, leaving stock, coupon usage and orders exactly as
they were.

The availability check must read stock inside the same transaction that
decrements it: two concurrent orders that together exceed the stock
cannot both commit, because whichever commits second has read a product
version that is no longer current.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from functools import partial
from typing import Callable

from ordercore.application.coupon_redemption_manager import (
    Clock,
    CouponRedemptionManager,
    utc_now,
)
from ordercore.application.dto import OrderItemSpec, PlaceOrderCommand
from ordercore.application.retry import RetryPolicy, run_with_retry
from ordercore.domain.exceptions import (
    ConcurrencyConflictError,
    DuplicateOrderNumberError,
    OrderNotFoundError,
    ProductInactiveError,
)
from ordercore.domain.model.coupon import Coupon
from ordercore.domain.model.order import (
    Customer,
    Order,
    OrderItem,
    PaymentStatus,
    generate_order_number,
)
from ordercore.domain.model.pricing import PricedLine
from ordercore.domain.model.product import Product, Variant
from ordercore.domain.model.value_objects import Quantity
from ordercore.domain.repository.unit_of_work import UnitOfWork, UnitOfWorkFactory
from ordercore.domain.service.pricing_engine import PricingEngine

logger = logging.getLogger(__name__)

MAX_ORDER_NUMBER_ATTEMPTS = 3


@dataclass(frozen=True)
class _ResolvedLine:
    spec: OrderItemSpec
    product: Product
    variant: Variant | None

    def to_order_item(self) -> OrderItem:
        return OrderItem(
            product_id=self.product.id,
            product_name=self.product.name,
            quantity=Quantity(self.spec.quantity),
            unit_price=self.product.unit_price(self.variant),
            variant_id=self.variant.id if self.variant else None,
            variant_name=self.variant.name if self.variant else None,
        )

    def to_priced_line(self) -> PricedLine:
        return PricedLine(
            unit_price=self.product.unit_price(self.variant),
            quantity=Quantity(self.spec.quantity),
        )


class OrderTransactionManager:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        pricing_engine: PricingEngine,
        coupon_manager: CouponRedemptionManager,
        retry_policy: RetryPolicy | None = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
        order_number_factory: Callable[[], str] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._pricing = pricing_engine
        self._coupons = coupon_manager
        self._retry_policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._sleep = sleep
        self._new_order_number = order_number_factory or (
            lambda: generate_order_number(self._clock())
        )

    # --- Place ----------------------------------------------------------------

    def place_order(self, command: PlaceOrderCommand, customer: Customer) -> Order:
        """Atomically reserve stock, price, redeem the coupon and persist."""
        for number_attempt in range(1, MAX_ORDER_NUMBER_ATTEMPTS + 1):
            order_number = self._new_order_number()
            try:
                order = run_with_retry(
                    partial(self._place_once, command, customer, order_number),
                    self._retry_policy,
                    "Place order",
                    sleep=self._sleep,
                )
            except DuplicateOrderNumberError:
                logger.warning(
                    "Order number %s collided (attempt %d), generating a new one",
                    order_number, number_attempt,
                )
                continue
            logger.info(
                "Order %s placed: %d line(s), total %s",
                order.order_number, len(order.items), order.pricing.total,
            )
            return order
        raise ConcurrencyConflictError("Could not allocate a unique order number")

    def _place_once(
        self, command: PlaceOrderCommand, customer: Customer, order_number: str
    ) -> Order:
        with self._uow_factory() as uow:
            lines = self._validate_items(uow, command.items)

            coupon: Coupon | None = None
            priced_lines = [line.to_priced_line() for line in lines]
            if command.coupon_code:
                subtotal = self._pricing.price(priced_lines).subtotal
                coupon = self._coupons.check_for_order(
                    uow,
                    code=command.coupon_code,
                    order_total=subtotal,
                    user_id=customer.identity,
                    category_ids={
                        line.product.category_id
                        for line in lines
                        if line.product.category_id
                    },
                    product_ids={line.product.id for line in lines},
                )
            pricing = self._pricing.price(priced_lines, coupon)

            for line in lines:
                uow.products.decrement_stock(
                    line.product.id,
                    line.variant.id if line.variant else None,
                    line.spec.quantity,
                )

            order = Order.create(
                order_number=order_number,
                customer=customer,
                items=[line.to_order_item() for line in lines],
                pricing=pricing,
                shipping_address=command.shipping_address,
                billing_address=command.billing_address,
                coupon_id=coupon.id if coupon else None,
                coupon_code=coupon.code if coupon else None,
                notes=command.notes,
                now=self._clock(),
            )
            uow.orders.add(order)

            if coupon is not None:
                self._coupons.redeem_within(
                    uow,
                    coupon,
                    order_id=order.id,
                    user_id=customer.identity,
                    discount=pricing.discount,
                    user_email=customer.email,
                )

            uow.commit()
            return order

    @staticmethod
    def _validate_items(uow: UnitOfWork, specs: list[OrderItemSpec]) -> list[_ResolvedLine]:
        """Read every line in-transaction and check aggregate availability.

        Demand is summed per product and per variant so two lines for the
        same product cannot each pass against the full stock.
        """
        lines: list[_ResolvedLine] = []
        product_demand: dict[str, int] = defaultdict(int)
        variant_demand: dict[tuple[str, str], int] = defaultdict(int)

        for spec in specs:
            product, variant = uow.products.read_for_update(spec.product_id, spec.variant_id)
            if not product.is_active:
                raise ProductInactiveError(f"Product {product.name} is not available")
            lines.append(_ResolvedLine(spec=spec, product=product, variant=variant))
            product_demand[product.id] += spec.quantity
            if variant is not None:
                variant_demand[(product.id, variant.id)] += spec.quantity

        for line in lines:
            product, variant = line.product, line.variant
            product.ensure_available(product_demand[product.id])
            if variant is not None:
                product.ensure_available(variant_demand[(product.id, variant.id)], variant)
        return lines

    # --- Cancel ---------------------------------------------------------------

    def cancel_order(
        self,
        order_id: str,
        cancelled_by: str | None,
        reason: str | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> Order:
        """Restore the snapshotted stock and mark the order cancelled.

        An optional payment status change commits in the same unit of work,
        so an invalid payment move leaves the order and stock untouched.
        Coupon usage is left untouched.
        """
        order = run_with_retry(
            partial(self._cancel_once, order_id, cancelled_by, reason, payment_status),
            self._retry_policy,
            f"Cancel order {order_id}",
            sleep=self._sleep,
        )
        logger.info("Order %s cancelled by %s", order.order_number, cancelled_by)
        return order

    def _cancel_once(
        self,
        order_id: str,
        cancelled_by: str | None,
        reason: str | None,
        payment_status: PaymentStatus | None,
    ) -> Order:
        with self._uow_factory() as uow:
            order = uow.orders.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundError(f"Order {order_id} not found")

            # raises InvalidStateTransitionError before any stock moves
            order.cancel(cancelled_by=cancelled_by, reason=reason, now=self._clock())
            if payment_status is not None:
                order.update_payment_status(payment_status, now=self._clock())

            for item in order.items:
                uow.products.increment_stock(
                    item.product_id, item.variant_id, item.quantity.value
                )
            uow.orders.save(order)
            uow.commit()
            return order
