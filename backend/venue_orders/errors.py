# Overview: Domain error taxonomy shared by services and routes.

"""
Order engine errors.

Every error raised inside a unit of work rolls that unit back before it
reaches the caller. Routes map `code` onto an HTTP status; `details` is safe
to return to clients (never contains storage-layer text).
"""

from __future__ import annotations


class OrderEngineError(Exception):
    """Base class for all engine errors."""
    code = "order_engine_error"
    http_status = 500
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(OrderEngineError, ValueError):
    """400-level input problem (malformed request, unknown status)."""
    code = "validation_error"
    http_status = 400


class InvalidTransitionError(ValidationError):
    """Requested status is not reachable from the order's current status."""
    code = "invalid_transition"

    def __init__(self, order_id: int, current_status: str, requested_status: str):
        super().__init__(
            f"Cannot move order {order_id} from {current_status} to {requested_status}",
            details={
                "order_id": order_id,
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )
        self.current_status = current_status
        self.requested_status = requested_status


class NotFoundError(OrderEngineError):
    code = "not_found"
    http_status = 404


class InsufficientStockError(OrderEngineError):
    """
    Raised when an accept (or manual write-off) needs more of an ingredient
    than is on hand. Client-correctable, so it maps to 409 rather than 5xx.
    """
    code = "insufficient_stock"
    http_status = 409

    def __init__(self, ingredient_id: int, ingredient_name: str, required, available):
        shortfall = required - available
        super().__init__(
            f"Insufficient stock for {ingredient_name}: need {required}, have {available}",
            details={
                "ingredient_id": ingredient_id,
                "ingredient_name": ingredient_name,
                "required": str(required),
                "available": str(available),
                "shortfall": str(shortfall),
            },
        )
        self.ingredient_id = ingredient_id
        self.ingredient_name = ingredient_name
        self.required = required
        self.available = available
        self.shortfall = shortfall


class ConcurrencyError(OrderEngineError):
    """Lock wait exhausted or conflicting concurrent update. Safe to retry."""
    code = "concurrency_conflict"
    http_status = 503
    retryable = True


class PersistenceError(OrderEngineError):
    """Underlying store failure. The unit of work has been rolled back."""
    code = "persistence_error"
    http_status = 500
    retryable = True


class PaymentError(ValidationError):
    """Payment recording rule violated (bad amount, cancelled order)."""
    code = "payment_error"
