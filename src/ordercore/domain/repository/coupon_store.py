"""Abstract store for coupons and their usage records."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ordercore.domain.model.coupon import Coupon, CouponUsage


class CouponStore(ABC):

    @abstractmethod
    def next_id(self) -> str:
        """Generate a new unique coupon ID."""

    @abstractmethod
    def get_by_id(self, coupon_id: str) -> Coupon | None:
        """Return a coupon by its ID, or None if not found."""

    @abstractmethod
    def find_active_by_code(self, code: str) -> Coupon | None:
        """Return the active coupon with this code (case-insensitive)."""

    @abstractmethod
    def find_by_code(self, code: str) -> Coupon | None:
        """Return the coupon with this code whether active or not."""

    @abstractmethod
    def count_usage(self, coupon_id: str, user_id: str) -> int:
        """Number of usage records for this coupon and user."""

    @abstractmethod
    def list_usage(self, coupon_id: str) -> list[CouponUsage]:
        """Usage records for a coupon, newest first."""

    @abstractmethod
    def increment_used_count(self, coupon_id: str) -> None:
        """Atomic +1 on ``used_count`` applied at commit."""

    @abstractmethod
    def add_usage(self, usage: CouponUsage) -> CouponUsage:
        """Append a usage record and return it with its ID assigned."""

    @abstractmethod
    def add(self, coupon: Coupon) -> None:
        """Insert a new coupon definition."""
