"""Test doubles and builders.

Tests run against the real DocumentStore kept in memory (no file path),
so transactions, version checks and conflicts behave exactly as in
production.  The doubles here only control time, sleeping and injected
commit conflicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from ordercore.application.catalog_service import CatalogService
from ordercore.application.coupon_redemption_manager import CouponRedemptionManager
from ordercore.application.dto import OrderItemSpec, PlaceOrderCommand, Requester
from ordercore.application.order_service import OrderService
from ordercore.application.order_transaction_manager import OrderTransactionManager
from ordercore.application.retry import RetryPolicy
from ordercore.domain.exceptions import ConcurrencyConflictError
from ordercore.domain.model.coupon import Coupon, DiscountType
from ordercore.domain.model.product import Product, Variant
from ordercore.domain.model.value_objects import Money
from ordercore.domain.service.pricing_engine import PricingEngine
from ordercore.infrastructure.persistence.document_store import DocumentStore
from ordercore.infrastructure.persistence.document_unit_of_work import (
    DocumentUnitOfWork,
    DocumentUnitOfWorkFactory,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
ADDRESS = {"line1": "1 Main St", "city": "Springfield", "zip": "12345"}
ADMIN = Requester(user_id="admin-1", email="admin@example.com", is_admin=True)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingSleep:
    """Stands in for time.sleep; remembers the requested pauses."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class ConflictingUnitOfWork(DocumentUnitOfWork):

    def __init__(self, store: DocumentStore, factory: ConflictingUnitOfWorkFactory) -> None:
        super().__init__(store)
        self._factory = factory

    def commit(self) -> None:
        if self._factory.remaining_conflicts > 0:
            self._factory.remaining_conflicts -= 1
            self.rollback()
            raise ConcurrencyConflictError("Injected conflict")
        super().commit()


class ConflictingUnitOfWorkFactory(DocumentUnitOfWorkFactory):
    """Fails the first *conflicts* commits with ConcurrencyConflictError."""

    def __init__(self, store: DocumentStore, conflicts: int) -> None:
        super().__init__(store)
        self.remaining_conflicts = conflicts

    def __call__(self) -> ConflictingUnitOfWork:
        return ConflictingUnitOfWork(self._store, self)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_product(
    id: str = "prod-1",
    name: str = "Widget",
    price: str = "25.00",
    stock: int = 10,
    variants: list[Variant] | None = None,
    category_id: str | None = None,
    is_active: bool = True,
) -> Product:
    return Product(
        id=id,
        name=name,
        price=Money.of(price),
        stock_quantity=stock,
        variants=list(variants or []),
        is_active=is_active,
        category_id=category_id,
    )


def make_variant(
    id: str = "var-1",
    stock: int = 5,
    price: str | None = None,
    name: str = "Large",
) -> Variant:
    return Variant(
        id=id,
        sku=f"SKU-{id.upper()}",
        name=name,
        stock=stock,
        price=Money.of(price) if price is not None else None,
    )


def make_coupon(
    code: str = "SAVE10",
    discount_type: DiscountType = DiscountType.PERCENTAGE,
    value: str = "10",
    id: str | None = None,
    **constraints,
) -> Coupon:
    return Coupon.create(
        id=id or f"coupon-{code.lower()}",
        code=code,
        description=f"{code} discount",
        discount_type=discount_type,
        discount_value=Decimal(value),
        **constraints,
    )


def seed(
    store: DocumentStore,
    products: list[Product] | None = None,
    coupons: list[Coupon] | None = None,
) -> None:
    with DocumentUnitOfWork(store) as uow:
        for product in products or []:
            uow.products.add(product)
        for coupon in coupons or []:
            uow.coupons.add(coupon)
        uow.commit()


def read_product(store: DocumentStore, product_id: str) -> Product:
    with DocumentUnitOfWork(store) as uow:
        product, _ = uow.products.read_for_update(product_id)
    return product


def read_coupon(store: DocumentStore, coupon_id: str) -> Coupon:
    with DocumentUnitOfWork(store) as uow:
        return uow.coupons.get_by_id(coupon_id)


def command(
    *items: tuple,
    email: str = "alice@example.com",
    name: str = "Alice",
    coupon_code: str | None = None,
    notes: str | None = None,
) -> PlaceOrderCommand:
    """Build a PlaceOrderCommand from (product_id, qty[, variant_id]) tuples."""
    return PlaceOrderCommand(
        items=[OrderItemSpec(item[0], item[1], item[2] if len(item) > 2 else None) for item in items],
        customer_email=email,
        customer_name=name,
        shipping_address=dict(ADDRESS),
        coupon_code=coupon_code,
        notes=notes,
    )


@dataclass
class Harness:
    store: DocumentStore
    uow_factory: ConflictingUnitOfWorkFactory
    clock: FixedClock
    sleep: RecordingSleep
    coupons: CouponRedemptionManager
    transactions: OrderTransactionManager
    service: OrderService
    catalog: CatalogService


def build_harness(
    products: list[Product] | None = None,
    coupons: list[Coupon] | None = None,
    conflicts: int = 0,
    store: DocumentStore | None = None,
    order_number_factory=None,
    retry_policy: RetryPolicy | None = None,
) -> Harness:
    """Wire the full application stack over an in-memory store."""
    store = store or DocumentStore()
    seed(store, products, coupons)
    uow_factory = ConflictingUnitOfWorkFactory(store, conflicts)
    clock = FixedClock()
    sleep = RecordingSleep()
    policy = retry_policy or RetryPolicy(jitter=False)
    coupon_manager = CouponRedemptionManager(uow_factory, policy, clock=clock, sleep=sleep)
    transactions = OrderTransactionManager(
        uow_factory,
        PricingEngine(),
        coupon_manager,
        retry_policy=policy,
        clock=clock,
        sleep=sleep,
        order_number_factory=order_number_factory,
    )
    service = OrderService(
        uow_factory, transactions, coupon_manager, retry_policy=policy, clock=clock, sleep=sleep
    )
    return Harness(
        store=store,
        uow_factory=uow_factory,
        clock=clock,
        sleep=sleep,
        coupons=coupon_manager,
        transactions=transactions,
        service=service,
        catalog=CatalogService(uow_factory),
    )
