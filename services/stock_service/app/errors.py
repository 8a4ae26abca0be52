"""Domain errors raised by the stock service.

Each error carries the HTTP status it is rendered with, so the application
installs a single handler for the whole family.
"""

from __future__ import annotations

from fastapi import status


class StockServiceError(Exception):
    """Base class for business-rule failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(StockServiceError):
    """Malformed or out-of-range input."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(StockServiceError):
    """A referenced item, movement or order does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class AlreadyDeletedError(StockServiceError):
    """Delete was called on a row that is already soft-deleted."""

    status_code = status.HTTP_400_BAD_REQUEST


class OrderAlreadyDeletedError(NotFoundError, AlreadyDeletedError):
    """Second delete of an order; surfaced to HTTP callers as not found."""

    status_code = status.HTTP_404_NOT_FOUND


class InsufficientStockError(StockServiceError):
    """The stock validator rejected a proposed change."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, item_id: int, *, available: int, required: int, message: str | None = None) -> None:
        super().__init__(
            message
            or f"Insufficient stock for item ID {item_id}. Available: {available}, Required: {required}"
        )
        self.item_id = item_id
        self.available = available
        self.required = required


class UnexpectedError(StockServiceError):
    """Storage failure while writing; fatal for the current request only."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
