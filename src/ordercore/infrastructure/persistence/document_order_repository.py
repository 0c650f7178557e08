"""DocumentStore-backed implementation of OrderRepository.

Order numbers are kept unique through a reservation document per number
in the ``orderNumbers`` collection, created in the same transaction as
the order itself.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ordercore.domain.model.order import (
    AdminNote,
    Cancellation,
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
)
from ordercore.domain.model.pricing import PricingResult
from ordercore.domain.model.value_objects import Money, Quantity
from ordercore.domain.repository.order_repository import OrderRepository
from ordercore.infrastructure.persistence.document_store import (
    Transaction,
    new_document_id,
)

ORDERS = "orders"
ORDER_NUMBERS = "orderNumbers"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class DocumentOrderRepository(OrderRepository):

    def __init__(self, tx: Transaction) -> None:
        self._tx = tx

    # --- OrderRepository interface --------------------------------------------

    def next_id(self) -> str:
        return new_document_id()

    def get_by_id(self, order_id: str) -> Order | None:
        raw = self._tx.get(ORDERS, order_id)
        return self._to_domain(order_id, raw) if raw is not None else None

    def get_by_order_number(self, order_number: str) -> Order | None:
        rows = self._tx.query(ORDERS, orderNumber=order_number)
        if not rows:
            return None
        order_id, raw = rows[0]
        return self._to_domain(order_id, raw)

    def list_for_user(self, user_id: str) -> list[Order]:
        return self._newest_first(self._tx.query(ORDERS, userId=user_id))

    def list_all(self, status: OrderStatus | None = None) -> list[Order]:
        if status is None:
            return self._newest_first(self._tx.query(ORDERS))
        return self._newest_first(self._tx.query(ORDERS, status=status.value))

    def add(self, order: Order) -> None:
        if order.id is None:
            order.id = self.next_id()
        self._tx.create(ORDER_NUMBERS, order.order_number, {"orderId": order.id})
        self._tx.create(ORDERS, order.id, self._to_raw(order))

    def save(self, order: Order) -> None:
        self._tx.set(ORDERS, order.id, self._to_raw(order))

    # --- Serialization --------------------------------------------------------

    def _newest_first(self, rows: list[tuple[str, dict]]) -> list[Order]:
        orders = [self._to_domain(order_id, raw) for order_id, raw in rows]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    @staticmethod
    def _to_raw(order: Order) -> dict:
        pricing = order.pricing
        cancellation = order.cancellation
        return {
            "orderNumber": order.order_number,
            "userId": order.customer.user_id,
            "customerEmail": order.customer.email,
            "customerName": order.customer.name,
            "shippingAddress": order.shipping_address,
            "billingAddress": order.billing_address,
            "items": [
                {
                    "productId": item.product_id,
                    "productName": item.product_name,
                    "productPrice": str(item.unit_price.amount),
                    "currency": item.unit_price.currency,
                    "quantity": item.quantity.value,
                    "variantId": item.variant_id,
                    "variantName": item.variant_name,
                    "subtotal": str(item.line_total.amount),
                }
                for item in order.items
            ],
            "subtotal": str(pricing.subtotal.amount),
            "discount": str(pricing.discount.amount),
            "tax": str(pricing.tax.amount),
            "shipping": str(pricing.shipping.amount),
            "total": str(pricing.total.amount),
            "freeShipping": pricing.free_shipping,
            "couponId": order.coupon_id,
            "couponCode": order.coupon_code,
            "notes": order.notes,
            "status": order.status.value,
            "paymentStatus": order.payment_status.value,
            "createdAt": _iso(order.created_at),
            "updatedAt": _iso(order.updated_at),
            "cancellationReason": cancellation.reason if cancellation else None,
            "cancelledBy": cancellation.cancelled_by if cancellation else None,
            "cancelledAt": _iso(cancellation.cancelled_at) if cancellation else None,
            "trackingNumber": order.tracking_number,
            "carrier": order.carrier,
            "shippedAt": _iso(order.shipped_at),
            "orderNotes": [
                {"note": n.note, "addedBy": n.added_by, "addedAt": _iso(n.added_at)}
                for n in order.admin_notes
            ],
        }

    @staticmethod
    def _to_domain(order_id: str, raw: dict) -> Order:
        items = [
            OrderItem(
                product_id=i["productId"],
                product_name=i["productName"],
                quantity=Quantity(i["quantity"]),
                unit_price=Money(Decimal(i["productPrice"]), i.get("currency", "USD")),
                variant_id=i.get("variantId"),
                variant_name=i.get("variantName"),
            )
            for i in raw["items"]
        ]
        cancellation = None
        if raw.get("cancelledAt"):
            cancellation = Cancellation(
                reason=raw.get("cancellationReason") or "",
                cancelled_by=raw.get("cancelledBy"),
                cancelled_at=_parse(raw["cancelledAt"]),
            )
        return Order(
            id=order_id,
            order_number=raw["orderNumber"],
            customer=Customer(
                email=raw["customerEmail"],
                name=raw["customerName"],
                user_id=raw.get("userId"),
            ),
            items=items,
            pricing=PricingResult(
                subtotal=Money(Decimal(raw["subtotal"])),
                discount=Money(Decimal(raw.get("discount", "0"))),
                tax=Money(Decimal(raw["tax"])),
                shipping=Money(Decimal(raw["shipping"])),
                total=Money(Decimal(raw["total"])),
                free_shipping=raw.get("freeShipping", False),
            ),
            shipping_address=raw.get("shippingAddress", {}),
            billing_address=raw.get("billingAddress", {}),
            coupon_id=raw.get("couponId"),
            coupon_code=raw.get("couponCode"),
            notes=raw.get("notes", ""),
            status=OrderStatus(raw["status"]),
            payment_status=PaymentStatus(raw["paymentStatus"]),
            created_at=_parse(raw["createdAt"]),
            updated_at=_parse(raw.get("updatedAt")) or _parse(raw["createdAt"]),
            cancellation=cancellation,
            tracking_number=raw.get("trackingNumber"),
            carrier=raw.get("carrier"),
            shipped_at=_parse(raw.get("shippedAt")),
            admin_notes=[
                AdminNote(note=n["note"], added_by=n.get("addedBy"), added_at=_parse(n["addedAt"]))
                for n in raw.get("orderNotes", [])
            ],
        )
