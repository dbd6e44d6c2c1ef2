"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ForbiddenError,
    ConflictError,
    DuplicateError,
    DatabaseError,

    # Product-specific
    ProductNotFoundError,
    ProductSKUExistsError,

    # Catalog import
    ImportParseError,
    ImportSessionNotFoundError,
    ImportSessionForbiddenError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ForbiddenError",
    "ConflictError",
    "DuplicateError",
    "DatabaseError",

    # Product
    "ProductNotFoundError",
    "ProductSKUExistsError",

    # Catalog import
    "ImportParseError",
    "ImportSessionNotFoundError",
    "ImportSessionForbiddenError",
]
