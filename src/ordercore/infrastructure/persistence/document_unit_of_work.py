"""DocumentStore-backed UnitOfWork: one store transaction per instance."""

from __future__ import annotations

from ordercore.domain.exceptions import (
    ConcurrencyConflictError,
    DuplicateOrderNumberError,
)
from ordercore.domain.repository.unit_of_work import UnitOfWork
from ordercore.infrastructure.persistence.document_coupon_store import DocumentCouponStore
from ordercore.infrastructure.persistence.document_order_repository import (
    ORDER_NUMBERS,
    DocumentOrderRepository,
)
from ordercore.infrastructure.persistence.document_product_store import DocumentProductStore
from ordercore.infrastructure.persistence.document_store import (
    DocumentExistsError,
    DocumentStore,
)


class DocumentUnitOfWork(UnitOfWork):

    def __init__(self, store: DocumentStore) -> None:
        self._tx = store.transaction()
        self.products = DocumentProductStore(self._tx)
        self.coupons = DocumentCouponStore(self._tx)
        self.orders = DocumentOrderRepository(self._tx)

    def commit(self) -> None:
        try:
            self._tx.commit()
        except DocumentExistsError as exc:
            if exc.collection == ORDER_NUMBERS:
                raise DuplicateOrderNumberError(
                    f"Order number {exc.doc_id} is already taken"
                ) from exc
            raise ConcurrencyConflictError(str(exc)) from exc

    def rollback(self) -> None:
        if not self._tx.closed:
            self._tx.rollback()


class DocumentUnitOfWorkFactory:
    """Callable that opens a fresh unit of work on a shared store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def __call__(self) -> DocumentUnitOfWork:
        return DocumentUnitOfWork(self._store)
