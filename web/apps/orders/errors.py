"""Error taxonomy shared by the orders and payments domains.

Every error is a ``ValueError`` whose string form is a short, stable code
(for example ``"INSUFFICIENT_STOCK"``). Views map codes to HTTP statuses
through ``gateway.errors.error_response``; the human readable ``message``
travels alongside for clients.
"""


class StorefrontError(ValueError):
    """Base class for business and infrastructure errors.

    Attributes:
        code: Short machine readable error code, also returned by ``str()``.
        message: Human readable description safe to show to clients.
    """

    code = "STOREFRONT_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(self.code)
        self.message = message or self.code


class ValidationError(StorefrontError):
    """Malformed input. ``errors`` holds per-field details."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class NotFoundError(StorefrontError):
    code = "NOT_FOUND"


class OrderNotFound(NotFoundError):
    code = "ORDER_NOT_FOUND"


class ProductNotFound(NotFoundError):
    code = "PRODUCT_NOT_FOUND"


class InsufficientStock(StorefrontError):
    code = "INSUFFICIENT_STOCK"


class OrderNotCancellable(StorefrontError):
    code = "ORDER_NOT_CANCELLABLE"


class InvalidStatus(StorefrontError):
    code = "INVALID_STATUS"


class SignatureMismatch(StorefrontError):
    code = "SIGNATURE_MISMATCH"


class DuplicateOrderId(StorefrontError):
    code = "DUPLICATE_ORDER_ID"


class UpstreamGatewayError(StorefrontError):
    code = "UPSTREAM_GATEWAY_ERROR"


class PersistenceError(StorefrontError):
    code = "PERSISTENCE_ERROR"


class OrderNotPayable(StorefrontError):
    """A payment arrived for an order that was already cancelled or refunded."""

    code = "ORDER_NOT_PAYABLE"


class ConcurrentUpdate(StorefrontError):
    """The stored order changed after it was loaded."""

    code = "CONCURRENT_UPDATE"
