"""Pricing value objects: the input lines and the computed totals."""

from __future__ import annotations

from dataclasses import dataclass

from ordercore.domain.model.value_objects import Money, Quantity


@dataclass(frozen=True)
class PricedLine:
    """A line resolved against the store: the *current* unit price."""

    unit_price: Money
    quantity: Quantity

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity.value


@dataclass(frozen=True)
class PricingResult:
    """Derived order totals. Immutable once the order is created."""

    subtotal: Money
    discount: Money
    tax: Money
    shipping: Money
    total: Money
    free_shipping: bool = False
