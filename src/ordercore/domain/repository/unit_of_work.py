"""Abstract unit of work: one isolated, all-or-nothing transaction.

Used as a context manager.  Leaving the block without calling
``commit()`` (or by raising) discards every pending write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from ordercore.domain.repository.coupon_store import CouponStore
from ordercore.domain.repository.order_repository import OrderRepository
from ordercore.domain.repository.product_store import ProductStore


class UnitOfWork(ABC):

    products: ProductStore
    coupons: CouponStore
    orders: OrderRepository

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.rollback()

    @abstractmethod
    def commit(self) -> None:
        """Apply every pending write atomically.

        Raises ConcurrencyConflictError if data read by this unit of work
        changed since it was read.
        """

    @abstractmethod
    def rollback(self) -> None:
        """Discard pending writes. Safe to call after commit."""


UnitOfWorkFactory = Callable[[], UnitOfWork]
