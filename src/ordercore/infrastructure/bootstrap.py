"""Composition root: builds the store, engine and services from Settings.

Only this module and the CLI import from every layer; the application
services see the unit-of-work factory and nothing more concrete.
"""

from __future__ import annotations

from ordercore.application.catalog_service import CatalogService
from ordercore.application.coupon_redemption_manager import CouponRedemptionManager
from ordercore.application.order_service import OrderService
from ordercore.application.order_transaction_manager import OrderTransactionManager
from ordercore.application.retry import RetryPolicy
from ordercore.domain.model.value_objects import Money
from ordercore.domain.service.pricing_engine import PricingEngine
from ordercore.infrastructure.config import Settings
from ordercore.infrastructure.persistence.document_store import DocumentStore
from ordercore.infrastructure.persistence.document_unit_of_work import (
    DocumentUnitOfWorkFactory,
)


def document_store(settings: Settings) -> DocumentStore:
    return DocumentStore(settings.store_path)


def retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.max_attempts,
        backoff_initial=settings.backoff_initial,
        backoff_factor=settings.backoff_factor,
        backoff_max=settings.backoff_max,
    )


def pricing_engine(settings: Settings) -> PricingEngine:
    return PricingEngine(
        tax_rate=settings.tax_rate,
        flat_shipping_fee=Money(settings.flat_shipping_fee),
        free_shipping_threshold=Money(settings.free_shipping_threshold),
    )


def order_service(settings: Settings, store: DocumentStore | None = None) -> OrderService:
    """Build the OrderService and its collaborators over one shared store."""
    uow_factory = DocumentUnitOfWorkFactory(store or document_store(settings))
    policy = retry_policy(settings)
    coupons = CouponRedemptionManager(uow_factory, retry_policy=policy)
    transactions = OrderTransactionManager(
        uow_factory,
        pricing_engine(settings),
        coupons,
        retry_policy=policy,
    )
    return OrderService(uow_factory, transactions, coupons, retry_policy=policy)


def coupon_manager(settings: Settings, store: DocumentStore | None = None) -> CouponRedemptionManager:
    uow_factory = DocumentUnitOfWorkFactory(store or document_store(settings))
    return CouponRedemptionManager(uow_factory, retry_policy=retry_policy(settings))


def catalog_service(settings: Settings, store: DocumentStore | None = None) -> CatalogService:
    return CatalogService(DocumentUnitOfWorkFactory(store or document_store(settings)))
