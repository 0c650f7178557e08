"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the outer layers (CLI, route adapters) can catch them uniformly.  Every
exception carries a stable machine-readable ``code`` and the HTTP-equivalent
``status`` the route layer should answer with.
"""

from __future__ import annotations


class DomainException(Exception):
    """Base class for all domain errors."""

    code = "SERVER_ERROR"
    status = 500
    retryable = False

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class ValidationError(DomainException):
    """Malformed input or a violated invariant. Never retried."""

    code = "VALIDATION_ERROR"
    status = 400


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""

    code = "NOT_FOUND"
    status = 404


class ProductNotFoundError(EntityNotFoundError):
    code = "PRODUCT_NOT_FOUND"


class VariantNotFoundError(EntityNotFoundError):
    code = "VARIANT_NOT_FOUND"


class OrderNotFoundError(EntityNotFoundError):
    code = "ORDER_NOT_FOUND"


class CouponNotFoundError(EntityNotFoundError):
    code = "INVALID_COUPON"


class BusinessRuleError(DomainException):
    """A business rule rejected the operation. Surfaced verbatim."""

    code = "BUSINESS_RULE_VIOLATION"
    status = 400


class InsufficientStockError(BusinessRuleError):
    code = "INSUFFICIENT_STOCK"
    status = 409


class ProductInactiveError(BusinessRuleError):
    code = "PRODUCT_INACTIVE"
    status = 409


class InvalidStateTransitionError(BusinessRuleError):
    code = "INVALID_STATE_TRANSITION"


class CouponRejectedError(BusinessRuleError):
    """A coupon failed one of its eligibility checks.

    ``code`` is one of the ``COUPON_*`` / ``*_NOT_APPLICABLE`` codes
    defined on :class:`ordercore.domain.model.coupon.CouponCheck`.
    """

    code = "COUPON_REJECTED"


class ForbiddenError(DomainException):
    code = "FORBIDDEN"
    status = 403


class ConcurrencyConflictError(DomainException):
    """Another transaction modified data this transaction read.

    Retried locally by the transaction managers; only surfaced once the
    retry budget is exhausted.
    """

    code = "CONCURRENCY_CONFLICT"
    status = 409
    retryable = True


class DuplicateOrderNumberError(DomainException):
    """The generated order number is already taken."""

    code = "DUPLICATE_ORDER_NUMBER"
    status = 409


class StoreUnavailableError(DomainException):
    """The backing store failed. Not retried by the application layer."""

    code = "STORE_UNAVAILABLE"
    status = 503
