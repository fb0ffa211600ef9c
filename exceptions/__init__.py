"""
Custom exceptions module.

Import errors from here rather than from exceptions.errors.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    StoreError,

    # Order feed
    FeedUnavailableError,
    FeedFormatError,

    # Planning board
    NoLoadAssignedError,
    InvalidStatusError,
    OutfeedNotFoundError,
    StoreConflictError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "StoreError",

    # Order feed
    "FeedUnavailableError",
    "FeedFormatError",

    # Planning board
    "NoLoadAssignedError",
    "InvalidStatusError",
    "OutfeedNotFoundError",
    "StoreConflictError",
]
