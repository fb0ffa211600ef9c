"""
Custom exception classes for the application.

Every error carries a stable code, an HTTP status and a details dict so
routes can turn it into the standard error envelope.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "NO_LOAD_ASSIGNED")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing state (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class StoreError(AppError):
    """Persistence layer failure (500). The transaction was rolled back."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None,
        code: str = "STORE_ERROR",
        status_code: int = 500
    ):
        super().__init__(
            code=code,
            message=f"Store {operation} failed: {message}",
            status_code=status_code,
            details={"operation": operation, **(details or {})}
        )


# ===================
# ORDER FEED
# ===================

class FeedUnavailableError(ExternalServiceError):
    """Order feed could not be reached or answered with an HTTP error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="order_feed",
            message=message,
            details=details
        )


class FeedFormatError(AppError):
    """Order feed answered with an unexpected payload shape (502)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="ORDER_FEED_FORMAT_ERROR",
            message=message,
            status_code=502,
            details=details
        )


# ===================
# PLANNING BOARD
# ===================

class NoLoadAssignedError(ConflictError):
    """Order cannot be planned before it belongs to a load."""

    def __init__(self, order_id: int):
        super().__init__(
            code="NO_LOAD_ASSIGNED",
            message=f"Order {order_id} has no load assigned",
            details={"order_id": order_id}
        )


class InvalidStatusError(ValidationError):
    """Outfeed status is not one of the accepted values."""

    def __init__(self, status: Any, allowed: list[str]):
        super().__init__(
            code="INVALID_OUTFEED_STATUS",
            message=f"Invalid outfeed status: {status!r}",
            details={"status": status, "allowed": allowed}
        )


class OutfeedNotFoundError(NotFoundError):
    """Outfeed not present in the outfeed catalog."""

    def __init__(self, outfeed_id: int):
        super().__init__(
            resource="Outfeed",
            identifier=str(outfeed_id),
            code="OUTFEED_NOT_FOUND"
        )


class StoreConflictError(StoreError):
    """Board changed since the snapshot was read; nothing was written."""

    def __init__(self, expected_revision: int, message: str = "revision conflict"):
        super().__init__(
            operation="commit",
            message=message,
            details={"expected_revision": expected_revision},
            code="STORE_CONFLICT",
            status_code=409
        )
