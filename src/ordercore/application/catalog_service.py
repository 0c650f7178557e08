"""Application service: seed and list the product catalog."""

from __future__ import annotations

import logging

from ordercore.domain.exceptions import ValidationError
from ordercore.domain.model.product import Product, Variant
from ordercore.domain.model.value_objects import Money
from ordercore.domain.repository.unit_of_work import UnitOfWorkFactory

logger = logging.getLogger(__name__)


class CatalogService:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def add_product(
        self,
        product_id: str,
        name: str,
        price: str,
        stock: int,
        variants: list[Variant] | None = None,
        category_id: str | None = None,
        is_active: bool = True,
    ) -> Product:
        """Add a new product to the catalog."""
        if not product_id or not product_id.strip():
            raise ValidationError("Product id is required")
        if not name or not name.strip():
            raise ValidationError("Product name is required")
        if isinstance(stock, bool) or not isinstance(stock, int):
            raise ValidationError("Stock must be an integer")

        product = Product(
            id=product_id.strip(),
            name=name.strip(),
            price=Money.of(price),
            stock_quantity=stock,
            variants=list(variants or []),
            is_active=is_active,
            category_id=category_id,
        )
        with self._uow_factory() as uow:
            uow.products.add(product)
            uow.commit()
        logger.info("Product %s added with stock %d", product.id, product.stock_quantity)
        return product

    def list_products(self) -> list[Product]:
        with self._uow_factory() as uow:
            return sorted(uow.products.list_all(), key=lambda p: p.id)

    def get_product(self, product_id: str) -> Product:
        with self._uow_factory() as uow:
            product, _ = uow.products.read_for_update(product_id)
        return product
