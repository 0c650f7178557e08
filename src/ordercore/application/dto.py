"""Data Transfer Objects — plain containers that cross layer boundaries.

Inputs carry only what the customer asked for (never prices).  Outputs
expose orders and coupon checks without leaking domain internals;
``to_dict()`` renders the camelCase bodies the route layer returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ordercore.domain.model.coupon import Coupon
from ordercore.domain.model.order import Order
from ordercore.domain.model.value_objects import Money


def _amount(money: Money) -> str:
    return f"{money.amount:.2f}"


def _timestamp(value) -> str | None:
    return value.isoformat() if value else None


# --- Inputs -------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItemSpec:
    """Input: one cart line (product, optional variant, quantity)."""

    product_id: str
    quantity: int
    variant_id: str | None = None


@dataclass(frozen=True)
class PlaceOrderCommand:
    items: list[OrderItemSpec]
    customer_email: str
    customer_name: str
    shipping_address: dict
    billing_address: dict | None = None
    coupon_code: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Requester:
    """The authenticated caller, as resolved by the auth layer."""

    user_id: str | None
    email: str | None = None
    is_admin: bool = False

    @property
    def actor(self) -> str | None:
        return self.user_id or self.email


@dataclass(frozen=True)
class CouponValidationRequest:
    code: str
    order_total: Decimal | str
    user_id: str | None = None
    category_id: str | None = None
    product_ids: list[str] = field(default_factory=list)


# --- Outputs ------------------------------------------------------------------


@dataclass(frozen=True)
class OrderLineItemDTO:
    product_id: str
    product_name: str
    variant_id: str | None
    variant_name: str | None
    quantity: int
    unit_price: str  # e.g. "15.00"
    line_total: str


@dataclass(frozen=True)
class OrderDTO:
    id: str
    order_number: str
    customer_name: str
    customer_email: str
    user_id: str | None
    status: str
    payment_status: str
    items: list[OrderLineItemDTO]
    subtotal: str
    discount: str
    tax: str
    shipping: str
    total: str
    coupon_code: str | None
    created_at: str
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    cancelled_at: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "userId": self.user_id,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "status": self.status,
            "paymentStatus": self.payment_status,
            "items": [
                {
                    "productId": item.product_id,
                    "productName": item.product_name,
                    "variantId": item.variant_id,
                    "variantName": item.variant_name,
                    "quantity": item.quantity,
                    "productPrice": item.unit_price,
                    "subtotal": item.line_total,
                }
                for item in self.items
            ],
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "shipping": self.shipping,
            "total": self.total,
            "couponCode": self.coupon_code,
            "createdAt": self.created_at,
            "cancellationReason": self.cancellation_reason,
            "cancelledBy": self.cancelled_by,
            "cancelledAt": self.cancelled_at,
            "trackingNumber": self.tracking_number,
            "carrier": self.carrier,
        }


def order_to_dto(order: Order) -> OrderDTO:
    cancellation = order.cancellation
    return OrderDTO(
        id=order.id,  # type: ignore[arg-type]
        order_number=order.order_number,
        customer_name=order.customer.name,
        customer_email=order.customer.email,
        user_id=order.customer.user_id,
        status=order.status.value,
        payment_status=order.payment_status.value,
        items=[
            OrderLineItemDTO(
                product_id=item.product_id,
                product_name=item.product_name,
                variant_id=item.variant_id,
                variant_name=item.variant_name,
                quantity=item.quantity.value,
                unit_price=_amount(item.unit_price),
                line_total=_amount(item.line_total),
            )
            for item in order.items
        ],
        subtotal=_amount(order.pricing.subtotal),
        discount=_amount(order.pricing.discount),
        tax=_amount(order.pricing.tax),
        shipping=_amount(order.pricing.shipping),
        total=_amount(order.pricing.total),
        coupon_code=order.coupon_code,
        created_at=order.created_at.strftime("%Y-%m-%d %H:%M UTC"),
        cancellation_reason=cancellation.reason if cancellation else None,
        cancelled_by=cancellation.cancelled_by if cancellation else None,
        cancelled_at=_timestamp(cancellation.cancelled_at) if cancellation else None,
        tracking_number=order.tracking_number,
        carrier=order.carrier,
        notes=[n.note for n in order.admin_notes],
    )


@dataclass(frozen=True)
class CouponValidationDTO:
    coupon_id: str
    code: str
    discount_type: str
    discount_value: str
    discount_amount: str
    description: str
    free_shipping: bool

    @staticmethod
    def from_coupon(coupon: Coupon, discount: Money) -> CouponValidationDTO:
        return CouponValidationDTO(
            coupon_id=coupon.id,
            code=coupon.code,
            discount_type=coupon.discount_type.value,
            discount_value=str(coupon.discount_value),
            discount_amount=_amount(discount),
            description=coupon.description,
            free_shipping=coupon.grants_free_shipping,
        )

    def to_dict(self) -> dict:
        return {
            "valid": True,
            "coupon": {
                "id": self.coupon_id,
                "code": self.code,
                "discountType": self.discount_type,
                "discountValue": self.discount_value,
                "discountAmount": self.discount_amount,
                "description": self.description,
                "freeShipping": self.free_shipping,
            },
        }
