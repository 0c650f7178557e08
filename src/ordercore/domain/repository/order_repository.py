"""Abstract repository for Order aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ordercore.domain.model.order import Order, OrderStatus


class OrderRepository(ABC):

    @abstractmethod
    def next_id(self) -> str:
        """Generate a new unique order ID."""

    @abstractmethod
    def get_by_id(self, order_id: str) -> Order | None:
        """Return an order by its ID, or None if not found."""

    @abstractmethod
    def get_by_order_number(self, order_number: str) -> Order | None:
        """Return an order by its human-readable number, or None."""

    @abstractmethod
    def list_for_user(self, user_id: str) -> list[Order]:
        """Orders placed by an authenticated user, newest first."""

    @abstractmethod
    def list_all(self, status: OrderStatus | None = None) -> list[Order]:
        """Every order, optionally filtered by status, newest first."""

    @abstractmethod
    def add(self, order: Order) -> None:
        """Persist a new order, assigning its ID.

        The order number must be unique; a clash surfaces as
        DuplicateOrderNumberError when the unit of work commits.
        """

    @abstractmethod
    def save(self, order: Order) -> None:
        """Persist changes to an existing order."""
