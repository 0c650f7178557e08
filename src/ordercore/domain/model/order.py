"""Order aggregate — the core of the domain.

The Order is an aggregate root that owns its line items (embedded, never
referenced separately).  Totals are derived once at placement and are
immutable afterwards; only status, payment status, tracking and notes
change over the order's life.
"""

from __future__ import annotations

import random
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from ordercore.domain.exceptions import InvalidStateTransitionError, ValidationError
from ordercore.domain.model.pricing import PricingResult
from ordercore.domain.model.value_objects import Money, Quantity


class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


# Fulfillment moves forward only, in this order.  CANCELLED sits outside
# the sequence and is reachable only through ``Order.cancel``.
FULFILLMENT_SEQUENCE = (
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)
CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING, PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}

MAX_LINE_ITEMS = 50
DEFAULT_CANCELLATION_REASON = "Cancelled by customer"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Customer:
    """Who placed the order: an authenticated user or a guest email."""

    email: str
    name: str
    user_id: str | None = None

    @property
    def identity(self) -> str:
        """Stable key for per-customer limits (user id, else guest email)."""
        return self.user_id if self.user_id else self.email.strip().lower()


@dataclass(frozen=True)
class OrderItem:
    """Snapshot of a product line at order-creation time.

    Stays stable even if the product later changes price or is deleted.
    """

    product_id: str
    product_name: str
    quantity: Quantity
    unit_price: Money  # locked at order-creation time
    variant_id: str | None = None
    variant_name: str | None = None

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity.value


@dataclass(frozen=True)
class Cancellation:
    reason: str
    cancelled_by: str | None
    cancelled_at: datetime


@dataclass(frozen=True)
class AdminNote:
    note: str
    added_by: str | None
    added_at: datetime


@dataclass
class Order:
    """Aggregate root for customer orders.

    Use ``Order.create()`` for new orders.  The ``__init__`` stays simple
    so the repository can reconstitute persisted orders without
    re-validating them.
    """

    id: str | None
    order_number: str
    customer: Customer
    items: list[OrderItem]
    pricing: PricingResult
    shipping_address: dict
    billing_address: dict
    coupon_id: str | None = None
    coupon_code: str | None = None
    notes: str = ""
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    cancellation: Cancellation | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    shipped_at: datetime | None = None
    admin_notes: list[AdminNote] = field(default_factory=list)

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(
        order_number: str,
        customer: Customer,
        items: list[OrderItem],
        pricing: PricingResult,
        shipping_address: dict,
        billing_address: dict | None = None,
        coupon_id: str | None = None,
        coupon_code: str | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Order:
        """Create a new pending order, enforcing all invariants."""
        if not items:
            raise ValidationError("Order must contain at least one item")
        if len(items) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")
        if not shipping_address:
            raise ValidationError("Shipping address is required")

        created = now or _now()
        return Order(
            id=None,
            order_number=order_number,
            customer=customer,
            items=list(items),
            pricing=pricing,
            shipping_address=dict(shipping_address),
            billing_address=dict(billing_address or shipping_address),
            coupon_id=coupon_id,
            coupon_code=coupon_code,
            notes=notes or "",
            created_at=created,
            updated_at=created,
        )

    # --- State transitions ----------------------------------------------------

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    def cancel(
        self,
        cancelled_by: str | None,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Transition PENDING|PROCESSING -> CANCELLED.

        Stock restoration must happen in the same transaction (coordinated
        by the order transaction manager).
        """
        if not self.is_cancellable:
            raise InvalidStateTransitionError(
                f"Cannot cancel order with status: {self.status.value}"
            )
        at = now or _now()
        self.status = OrderStatus.CANCELLED
        self.cancellation = Cancellation(
            reason=(reason or "").strip() or DEFAULT_CANCELLATION_REASON,
            cancelled_by=cancelled_by,
            cancelled_at=at,
        )
        self.updated_at = at

    def advance_to(self, new_status: OrderStatus, now: datetime | None = None) -> None:
        """Move forward along pending -> processing -> shipped -> delivered.

        Skipping steps forward is allowed; going back, staying put, or
        leaving a terminal state is not.
        """
        if new_status == OrderStatus.CANCELLED:
            raise InvalidStateTransitionError(
                "Orders are cancelled through cancel(), not a status update"
            )
        if self.status not in FULFILLMENT_SEQUENCE or self.status == OrderStatus.DELIVERED:
            raise InvalidStateTransitionError(
                f"Order in {self.status.value} status cannot change status"
            )
        current = FULFILLMENT_SEQUENCE.index(self.status)
        target = FULFILLMENT_SEQUENCE.index(new_status)
        if target <= current:
            raise InvalidStateTransitionError(
                f"Cannot move order from {self.status.value} to {new_status.value}"
            )
        at = now or _now()
        self.status = new_status
        if new_status == OrderStatus.SHIPPED and self.shipped_at is None:
            self.shipped_at = at
        self.updated_at = at

    def update_payment_status(
        self, new_status: PaymentStatus, now: datetime | None = None
    ) -> None:
        if new_status == self.payment_status:
            return
        if new_status not in PAYMENT_TRANSITIONS[self.payment_status]:
            raise InvalidStateTransitionError(
                f"Cannot change payment status from {self.payment_status.value} "
                f"to {new_status.value}"
            )
        self.payment_status = new_status
        self.updated_at = now or _now()

    def mark_shipped(
        self,
        tracking_number: str,
        carrier: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Attach tracking details and move the order to SHIPPED."""
        if not tracking_number or not tracking_number.strip():
            raise ValidationError("Tracking number is required")
        if self.status != OrderStatus.SHIPPED:
            self.advance_to(OrderStatus.SHIPPED, now=now)
        self.tracking_number = tracking_number.strip()
        self.carrier = carrier.strip() if carrier and carrier.strip() else None
        self.updated_at = now or _now()

    def add_note(self, note: str, added_by: str | None, now: datetime | None = None) -> None:
        if not note or not note.strip():
            raise ValidationError("Note cannot be empty")
        at = now or _now()
        self.admin_notes.append(AdminNote(note=note.strip(), added_by=added_by, added_at=at))
        self.updated_at = at

    # --- Queries --------------------------------------------------------------

    def is_owned_by(self, user_id: str | None) -> bool:
        return user_id is not None and self.customer.user_id == user_id


# ---------------------------------------------------------------------------
# Order numbers
# ---------------------------------------------------------------------------
_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_order_number(
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> str:
    """Human-readable order number: ``ORD-<base36 millis>-<4 random chars>``.

    Not guaranteed unique on its own; the order repository rejects
    duplicates and the caller generates a new one.
    """
    at = now or _now()
    millis = int(at.timestamp() * 1000)
    chooser = rng or random
    suffix = "".join(chooser.choice(_BASE36) for _ in range(4))
    return f"ORD-{_to_base36(millis)}-{suffix}"
