"""Abstract store for the Product aggregate and its stock counters.

Every method runs inside the unit of work that created the store, so
reads belong to that transaction's snapshot and writes only become
visible when it commits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ordercore.domain.model.product import Product, Variant


class ProductStore(ABC):

    @abstractmethod
    def read_for_update(
        self, product_id: str, variant_id: str | None = None
    ) -> tuple[Product, Variant | None]:
        """Transactional read of a product and, optionally, one variant.

        Raises ProductNotFoundError / VariantNotFoundError.
        """

    @abstractmethod
    def decrement_stock(
        self, product_id: str, variant_id: str | None, quantity: int
    ) -> None:
        """Relative decrement; raises InsufficientStockError below zero."""

    @abstractmethod
    def increment_stock(
        self, product_id: str, variant_id: str | None, quantity: int
    ) -> None:
        """Relative increment used by cancellation. No upper bound."""

    @abstractmethod
    def add(self, product: Product) -> None:
        """Insert a new product (catalog seeding)."""

    @abstractmethod
    def list_all(self) -> list[Product]:
        """Return every product in the catalog."""
