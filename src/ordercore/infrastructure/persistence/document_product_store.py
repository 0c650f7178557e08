"""DocumentStore-backed implementation of ProductStore."""

from __future__ import annotations

import logging
from decimal import Decimal

from ordercore.domain.exceptions import ProductNotFoundError, ValidationError
from ordercore.domain.model.product import Product, Variant
from ordercore.domain.model.value_objects import Money
from ordercore.domain.repository.product_store import ProductStore
from ordercore.infrastructure.persistence.document_store import Transaction

logger = logging.getLogger(__name__)

PRODUCTS = "products"


class DocumentProductStore(ProductStore):

    def __init__(self, tx: Transaction) -> None:
        self._tx = tx

    # --- ProductStore interface -----------------------------------------------

    def read_for_update(
        self, product_id: str, variant_id: str | None = None
    ) -> tuple[Product, Variant | None]:
        raw = self._tx.get(PRODUCTS, product_id)
        if raw is None:
            raise ProductNotFoundError(f"Product {product_id} not found")
        product = self._to_domain(raw)
        variant = product.find_variant(variant_id) if variant_id else None
        return product, variant

    def decrement_stock(
        self, product_id: str, variant_id: str | None, quantity: int
    ) -> None:
        if quantity <= 0:
            raise ValidationError("Decrement quantity must be positive")
        # Checked against the value visible inside this transaction,
        # including earlier decrements made by the same transaction.
        product, variant = self.read_for_update(product_id, variant_id)
        product.ensure_available(quantity, variant)

        self._tx.increment(PRODUCTS, product_id, ("stockQuantity",), -quantity)
        if variant is not None:
            self._tx.increment(
                PRODUCTS, product_id, ("variants", variant.id, "stock"), -quantity
            )

    def increment_stock(
        self, product_id: str, variant_id: str | None, quantity: int
    ) -> None:
        if quantity <= 0:
            raise ValidationError("Increment quantity must be positive")
        raw = self._tx.get(PRODUCTS, product_id)
        if raw is None:
            logger.warning(
                "Product %s no longer exists; skipping restock of %d", product_id, quantity
            )
            return
        self._tx.increment(PRODUCTS, product_id, ("stockQuantity",), quantity)
        if variant_id is not None:
            if variant_id not in raw.get("variants", {}):
                logger.warning(
                    "Variant %s of product %s no longer exists; restocking product only",
                    variant_id, product_id,
                )
                return
            self._tx.increment(
                PRODUCTS, product_id, ("variants", variant_id, "stock"), quantity
            )

    def add(self, product: Product) -> None:
        if self._tx.get(PRODUCTS, product.id) is not None:
            raise ValidationError(f"Product '{product.id}' already exists")
        self._tx.create(PRODUCTS, product.id, self._to_raw(product))

    def list_all(self) -> list[Product]:
        return [self._to_domain(raw) for _, raw in self._tx.query(PRODUCTS)]

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(product: Product) -> dict:
        return {
            "id": product.id,
            "name": product.name,
            "price": str(product.price.amount),
            "currency": product.price.currency,
            "stockQuantity": product.stock_quantity,
            "isActive": product.is_active,
            "categoryId": product.category_id,
            "variants": {
                v.id: {
                    "id": v.id,
                    "sku": v.sku,
                    "name": v.name,
                    "price": str(v.price.amount) if v.price is not None else None,
                    "stock": v.stock,
                    "attributes": dict(v.attributes),
                }
                for v in product.variants
            },
        }

    @staticmethod
    def _to_domain(raw: dict) -> Product:
        currency = raw.get("currency", "USD")
        variants = [
            Variant(
                id=v["id"],
                sku=v["sku"],
                name=v.get("name", v["sku"]),
                stock=v["stock"],
                price=Money(Decimal(v["price"]), currency) if v.get("price") else None,
                attributes=v.get("attributes", {}),
            )
            for v in raw.get("variants", {}).values()
        ]
        return Product(
            id=raw["id"],
            name=raw["name"],
            price=Money(Decimal(raw["price"]), currency),
            stock_quantity=raw["stockQuantity"],
            variants=variants,
            is_active=raw.get("isActive", True),
            category_id=raw.get("categoryId"),
        )
