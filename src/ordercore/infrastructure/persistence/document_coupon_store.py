"""DocumentStore-backed implementation of CouponStore."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ordercore.domain.exceptions import ValidationError
from ordercore.domain.model.coupon import Coupon, CouponUsage, DiscountType, normalize_code
from ordercore.domain.model.value_objects import Money
from ordercore.domain.repository.coupon_store import CouponStore
from ordercore.infrastructure.persistence.document_store import (
    Transaction,
    new_document_id,
)

COUPONS = "coupons"
COUPON_USAGE = "couponUsage"


def _money(raw: str | None) -> Money | None:
    return Money(Decimal(raw)) if raw is not None else None


def _datetime(raw: str | None) -> datetime | None:
    return datetime.fromisoformat(raw) if raw else None


class DocumentCouponStore(CouponStore):

    def __init__(self, tx: Transaction) -> None:
        self._tx = tx

    # --- CouponStore interface ------------------------------------------------

    def next_id(self) -> str:
        return new_document_id()

    def get_by_id(self, coupon_id: str) -> Coupon | None:
        raw = self._tx.get(COUPONS, coupon_id)
        return self._to_domain(raw) if raw is not None else None

    def find_active_by_code(self, code: str) -> Coupon | None:
        rows = self._tx.query(COUPONS, code=normalize_code(code), isActive=True)
        return self._to_domain(rows[0][1]) if rows else None

    def find_by_code(self, code: str) -> Coupon | None:
        rows = self._tx.query(COUPONS, code=normalize_code(code))
        return self._to_domain(rows[0][1]) if rows else None

    def count_usage(self, coupon_id: str, user_id: str) -> int:
        return len(self._tx.query(COUPON_USAGE, couponId=coupon_id, userId=user_id))

    def list_usage(self, coupon_id: str) -> list[CouponUsage]:
        usages = [
            self._usage_to_domain(raw)
            for _, raw in self._tx.query(COUPON_USAGE, couponId=coupon_id)
        ]
        return sorted(usages, key=lambda u: u.applied_at, reverse=True)

    def increment_used_count(self, coupon_id: str) -> None:
        self._tx.increment(COUPONS, coupon_id, ("usedCount",), 1)

    def add_usage(self, usage: CouponUsage) -> CouponUsage:
        usage_id = usage.id or new_document_id()
        stored = CouponUsage(
            id=usage_id,
            coupon_id=usage.coupon_id,
            order_id=usage.order_id,
            user_id=usage.user_id,
            discount_amount=usage.discount_amount,
            applied_at=usage.applied_at,
            user_email=usage.user_email,
        )
        self._tx.create(COUPON_USAGE, usage_id, self._usage_to_raw(stored))
        return stored

    def add(self, coupon: Coupon) -> None:
        if self.find_by_code(coupon.code) is not None:
            raise ValidationError(f"Coupon code {coupon.code} already exists")
        self._tx.create(COUPONS, coupon.id, self._to_raw(coupon))

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(coupon: Coupon) -> dict:
        return {
            "id": coupon.id,
            "code": coupon.code,
            "description": coupon.description,
            "discountType": coupon.discount_type.value,
            "discountValue": str(coupon.discount_value),
            "minOrderAmount": str(coupon.min_order_amount.amount) if coupon.min_order_amount else None,
            "maxDiscountAmount": str(coupon.max_discount_amount.amount) if coupon.max_discount_amount else None,
            "maxUses": coupon.max_uses,
            "maxUsesPerUser": coupon.max_uses_per_user,
            "startDate": coupon.start_date.isoformat() if coupon.start_date else None,
            "expiryDate": coupon.expiry_date.isoformat() if coupon.expiry_date else None,
            "applicableCategories": list(coupon.applicable_categories),
            "applicableProducts": list(coupon.applicable_products),
            "isActive": coupon.is_active,
            "usedCount": coupon.used_count,
        }

    @staticmethod
    def _to_domain(raw: dict) -> Coupon:
        return Coupon(
            id=raw["id"],
            code=raw["code"],
            description=raw.get("description", ""),
            discount_type=DiscountType(raw["discountType"]),
            discount_value=Decimal(raw["discountValue"]),
            min_order_amount=_money(raw.get("minOrderAmount")),
            max_discount_amount=_money(raw.get("maxDiscountAmount")),
            max_uses=raw.get("maxUses"),
            max_uses_per_user=raw.get("maxUsesPerUser"),
            start_date=_datetime(raw.get("startDate")),
            expiry_date=_datetime(raw.get("expiryDate")),
            applicable_categories=raw.get("applicableCategories", []),
            applicable_products=raw.get("applicableProducts", []),
            is_active=raw.get("isActive", True),
            used_count=raw.get("usedCount", 0),
        )

    @staticmethod
    def _usage_to_raw(usage: CouponUsage) -> dict:
        return {
            "id": usage.id,
            "couponId": usage.coupon_id,
            "orderId": usage.order_id,
            "userId": usage.user_id,
            "userEmail": usage.user_email,
            "discountAmount": str(usage.discount_amount.amount),
            "appliedAt": usage.applied_at.isoformat(),
        }

    @staticmethod
    def _usage_to_domain(raw: dict) -> CouponUsage:
        return CouponUsage(
            id=raw["id"],
            coupon_id=raw["couponId"],
            order_id=raw["orderId"],
            user_id=raw.get("userId"),
            discount_amount=Money(Decimal(raw["discountAmount"])),
            applied_at=datetime.fromisoformat(raw["appliedAt"]),
            user_email=raw.get("userEmail"),
        )
