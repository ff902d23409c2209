# app/domain/errors.py
"""
Error kinds of the fulfillment core.

Every kind carries the HTTP status and error code the API renders it with.
The core raises these; only the API layer turns them into responses.
"""
from typing import Optional


class FulfillmentError(Exception):
    """Base class for all errors raised by the core."""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientInputError(FulfillmentError):
    """Bad action, bad cursor, bad page size, missing field. Never retried."""

    status_code = 400
    error_code = "BAD_REQUEST"


class EmptyCartError(FulfillmentError):
    status_code = 400
    error_code = "EMPTY_CART"

    def __init__(self, owner_id: str):
        super().__init__(f"Cart is empty for user {owner_id}")
        self.owner_id = owner_id


class ForbiddenError(FulfillmentError):
    status_code = 403
    error_code = "FORBIDDEN"


class NotFoundError(FulfillmentError):
    status_code = 404
    error_code = "NOT_FOUND"


class InsufficientStockError(FulfillmentError):
    """Conditional decrement precondition failed, stock left unchanged."""

    status_code = 409
    error_code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, requested: int, available: Optional[int] = None):
        detail = f"Insufficient stock for product {product_id}: requested {requested}"
        if available is not None:
            detail += f", available {available}"
        super().__init__(detail)
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidTransitionError(FulfillmentError):
    status_code = 409
    error_code = "INVALID_TRANSITION"


class TransientStorageError(FulfillmentError):
    """
    Timeout, throttling or a lost connection.

    Retryable by the caller with backoff, for idempotent operations only.
    `ambiguous` is set when the write may or may not have been applied
    (e.g. the commit itself timed out); such failures must not be retried.
    """

    status_code = 503
    error_code = "STORAGE_UNAVAILABLE"

    def __init__(self, message: str, ambiguous: bool = False):
        super().__init__(message)
        self.ambiguous = ambiguous


class ConcurrentModificationError(TransientStorageError):
    """A conditional write lost against a concurrent writer. Nothing was applied."""

    error_code = "CONCURRENT_MODIFICATION"


class StorageError(FulfillmentError):
    """Unknown storage failure. No partial state is assumed consistent."""

