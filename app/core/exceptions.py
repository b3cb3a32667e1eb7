"""
Domain Exceptions

Services raise these; the HTTP layer maps ``status_code`` onto the response
and passes ``message`` through as the ``error`` field.
"""

from typing import Optional


class POSError(Exception):
    """Base class for all point-of-sale domain failures."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(POSError):
    """Missing or malformed input."""

    status_code = 400


class NotFoundError(POSError):
    """A referenced record does not exist."""

    status_code = 404


class InsufficientStockError(POSError):
    """A cart asks for more grams than the menu item has in stock."""

    status_code = 500

    def __init__(self, item_name: str, available: float, requested: float):
        super().__init__(
            f"Insufficient stock for {item_name}. "
            f"Available: {available:g}g, Requested: {requested:g}g"
        )
        self.item_name = item_name
        self.available = available
        self.requested = requested


class PersistenceError(POSError):
    """The backing store failed to save or load a record."""

    status_code = 500
