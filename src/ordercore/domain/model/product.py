"""Product aggregate.

Products live independently of orders. The product is the sole owner of
its stock counters; orders only hold a price/quantity snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ordercore.domain.exceptions import (
    InsufficientStockError,
    ValidationError,
    VariantNotFoundError,
)
from ordercore.domain.model.value_objects import Money


@dataclass
class Variant:
    """A sellable configuration of a product (size, colour...)."""

    id: str
    sku: str
    name: str
    stock: int
    price: Money | None = None  # overrides the product price when set
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass
class Product:
    """A product in the catalog.

    Invariants:
    - ``stock_quantity`` is never negative
    - every variant's ``stock`` is never negative

    When a variant is ordered both the variant stock and the product-wide
    ``stock_quantity`` are checked and moved together.
    """

    id: str
    name: str
    price: Money
    stock_quantity: int
    variants: list[Variant] = field(default_factory=list)
    is_active: bool = True
    category_id: str | None = None

    def __post_init__(self) -> None:
        if self.stock_quantity < 0:
            raise ValidationError(f"Stock for {self.name} cannot be negative")
        for variant in self.variants:
            if variant.stock < 0:
                raise ValidationError(
                    f"Stock for variant {variant.sku} cannot be negative"
                )

    def find_variant(self, variant_id: str) -> Variant:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        raise VariantNotFoundError(
            f"Variant '{variant_id}' not found on product {self.name}"
        )

    def unit_price(self, variant: Variant | None = None) -> Money:
        if variant is not None and variant.price is not None:
            return variant.price
        return self.price

    def ensure_available(self, quantity: int, variant: Variant | None = None) -> None:
        """Raise InsufficientStockError if *quantity* cannot be served."""
        if quantity > self.stock_quantity:
            raise InsufficientStockError(
                f"Insufficient stock for product {self.name} "
                f"(need {quantity}, have {self.stock_quantity})"
            )
        if variant is not None and quantity > variant.stock:
            raise InsufficientStockError(
                f"Insufficient stock for variant {variant.name} "
                f"(need {quantity}, have {variant.stock})"
            )
