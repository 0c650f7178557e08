"""Application facade: the operations the route layer calls.

Validates input at the boundary, enforces who may do what, and delegates
the transactional work to the order transaction manager and the coupon
redemption manager.
"""

from __future__ import annotations

import logging
import re
import time
from decimal import Decimal
from enum import Enum
from functools import partial
from typing import Callable, TypeVar

from ordercore.application.coupon_redemption_manager import (
    Clock,
    CouponRedemptionManager,
    utc_now,
)
from ordercore.application.dto import (
    CouponValidationDTO,
    CouponValidationRequest,
    OrderDTO,
    PlaceOrderCommand,
    Requester,
    order_to_dto,
)
from ordercore.application.order_transaction_manager import OrderTransactionManager
from ordercore.application.retry import RetryPolicy, run_with_retry
from ordercore.domain.exceptions import ForbiddenError, OrderNotFoundError, ValidationError
from ordercore.domain.model.coupon import CouponUsage
from ordercore.domain.model.order import (
    MAX_LINE_ITEMS,
    Customer,
    Order,
    OrderStatus,
    PaymentStatus,
)
from ordercore.domain.model.value_objects import Quantity
from ordercore.domain.repository.unit_of_work import UnitOfWorkFactory

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
ADMIN_CANCELLATION_REASON = "Cancelled by admin"

E = TypeVar("E", bound=Enum)


def _parse_enum(enum_type: type[E], value: str | E, label: str) -> E:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError(
            f"Invalid {label} '{value}' (expected one of: {allowed})"
        ) from None


class OrderService:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        transaction_manager: OrderTransactionManager,
        coupon_manager: CouponRedemptionManager,
        retry_policy: RetryPolicy | None = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._uow_factory = uow_factory
        self._transactions = transaction_manager
        self._coupons = coupon_manager
        self._retry_policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._sleep = sleep

    # --- Checkout -------------------------------------------------------------

    def place_order(
        self, command: PlaceOrderCommand, requester: Requester | None = None
    ) -> OrderDTO:
        """Turn a cart into a pending order. Guests pass no requester."""
        self._validate_command(command)
        customer = Customer(
            email=command.customer_email.strip(),
            name=command.customer_name.strip(),
            user_id=requester.user_id if requester else None,
        )
        order = self._transactions.place_order(command, customer)
        return order_to_dto(order)

    def cancel_order(
        self, order_id: str, requester: Requester, reason: str | None = None
    ) -> OrderDTO:
        """Cancel a pending/processing order; owner or admin only."""
        order = self._load(order_id)
        self._require_owner_or_admin(order, requester)
        cancelled = self._transactions.cancel_order(order_id, requester.actor, reason)
        return order_to_dto(cancelled)

    # --- Fulfillment (admin) --------------------------------------------------

    def update_status(
        self,
        order_id: str,
        status: str | OrderStatus,
        requester: Requester,
        payment_status: str | PaymentStatus | None = None,
    ) -> OrderDTO:
        """Move an order forward; ``cancelled`` goes through cancellation."""
        self._require_admin(requester)
        new_status = _parse_enum(OrderStatus, status, "status")
        new_payment = (
            _parse_enum(PaymentStatus, payment_status, "payment status")
            if payment_status is not None
            else None
        )

        if new_status == OrderStatus.CANCELLED:
            # restores stock; rejects orders that are not cancellable
            order = self._transactions.cancel_order(
                order_id, requester.actor, ADMIN_CANCELLATION_REASON, new_payment
            )
            return order_to_dto(order)

        def apply(order: Order) -> None:
            if new_status != order.status:
                order.advance_to(new_status, now=self._clock())
            if new_payment is not None:
                order.update_payment_status(new_payment, now=self._clock())

        order = self._mutate(order_id, apply, "Update order status")
        logger.info("Order %s now %s/%s", order.order_number, order.status.value,
                    order.payment_status.value)
        return order_to_dto(order)

    def update_tracking(
        self,
        order_id: str,
        tracking_number: str,
        requester: Requester,
        carrier: str | None = None,
    ) -> OrderDTO:
        self._require_admin(requester)
        order = self._mutate(
            order_id,
            lambda o: o.mark_shipped(tracking_number, carrier, now=self._clock()),
            "Update tracking",
        )
        return order_to_dto(order)

    def add_note(self, order_id: str, note: str, requester: Requester) -> OrderDTO:
        self._require_admin(requester)
        order = self._mutate(
            order_id,
            lambda o: o.add_note(note, requester.email or requester.actor, now=self._clock()),
            "Add order note",
        )
        return order_to_dto(order)

    # --- Queries --------------------------------------------------------------

    def get_order(self, order_number: str, requester: Requester | None) -> OrderDTO:
        with self._uow_factory() as uow:
            order = uow.orders.get_by_order_number(order_number)
        if order is None:
            raise OrderNotFoundError("Order not found")
        self._require_owner_or_admin(order, requester)
        return order_to_dto(order)

    def list_orders(
        self, requester: Requester, status: str | OrderStatus | None = None
    ) -> list[OrderDTO]:
        """Admins see every order; customers see their own."""
        with self._uow_factory() as uow:
            if requester.is_admin:
                wanted = _parse_enum(OrderStatus, status, "status") if status else None
                orders = uow.orders.list_all(wanted)
            elif requester.user_id:
                orders = uow.orders.list_for_user(requester.user_id)
            else:
                raise ForbiddenError("Access denied")
        return [order_to_dto(order) for order in orders]

    # --- Coupons --------------------------------------------------------------

    def validate_coupon(self, request: CouponValidationRequest) -> CouponValidationDTO:
        if not request.code or not request.code.strip():
            raise ValidationError("Coupon code is required")
        return self._coupons.validate(request)

    def redeem_coupon(
        self,
        coupon_id: str,
        order_id: str,
        discount_amount: Decimal | str,
        requester: Requester,
    ) -> CouponUsage:
        if requester is None or not requester.user_id:
            raise ForbiddenError("Authentication required")
        return self._coupons.redeem(
            coupon_id,
            order_id,
            user_id=requester.user_id,
            discount_amount=discount_amount,
            user_email=requester.email,
        )

    # --- Internal helpers -----------------------------------------------------

    def _load(self, order_id: str) -> Order:
        with self._uow_factory() as uow:
            order = uow.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError("Order not found")
        return order

    def _mutate(self, order_id: str, change: Callable[[Order], None], description: str) -> Order:
        return run_with_retry(
            partial(self._mutate_once, order_id, change),
            self._retry_policy,
            description,
            sleep=self._sleep,
        )

    def _mutate_once(self, order_id: str, change: Callable[[Order], None]) -> Order:
        with self._uow_factory() as uow:
            order = uow.orders.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundError("Order not found")
            change(order)
            uow.orders.save(order)
            uow.commit()
            return order

    @staticmethod
    def _require_admin(requester: Requester | None) -> None:
        if requester is None or not requester.is_admin:
            raise ForbiddenError("Admin access required")

    @staticmethod
    def _require_owner_or_admin(order: Order, requester: Requester | None) -> None:
        if requester is None:
            raise ForbiddenError("Access denied")
        if not requester.is_admin and not order.is_owned_by(requester.user_id):
            raise ForbiddenError("Access denied")

    @staticmethod
    def _validate_command(command: PlaceOrderCommand) -> None:
        if not command.items:
            raise ValidationError("Order must contain at least one item")
        if len(command.items) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")
        for item in command.items:
            if not isinstance(item.product_id, str) or not item.product_id.strip():
                raise ValidationError("Each item needs a productId")
            if item.variant_id is not None and not isinstance(item.variant_id, str):
                raise ValidationError("variantId must be a string")
            Quantity(item.quantity)

        if not command.customer_email or not EMAIL_PATTERN.match(command.customer_email.strip()):
            raise ValidationError("A valid customer email is required")
        if not command.customer_name or not command.customer_name.strip():
            raise ValidationError("Customer name is required")
        if not isinstance(command.shipping_address, dict) or not command.shipping_address:
            raise ValidationError("Shipping address is required")
        if command.billing_address is not None and not isinstance(command.billing_address, dict):
            raise ValidationError("Billing address must be an object")
