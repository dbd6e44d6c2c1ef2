"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.product import (
    ProductCreate,
    ProductUpdate,
    ProductVariant,
    ProductResponse,
)
from models.category import (
    CategoryResponse,
    CategoryListResponse,
)
from models.catalog_import import (
    RowErrorCode,
    ImportOutcomeStatus,
    BatchStatus,
    PlannedAction,
    RowErrorResponse,
    ImportOutcome,
    ImportReport,
    ImportPreviewRow,
    ImportPreview,
    ImportConfirmRequest,
    FailuresReportRequest,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Product
    "ProductCreate",
    "ProductUpdate",
    "ProductVariant",
    "ProductResponse",

    # Category
    "CategoryResponse",
    "CategoryListResponse",

    # Catalog import
    "RowErrorCode",
    "ImportOutcomeStatus",
    "BatchStatus",
    "PlannedAction",
    "RowErrorResponse",
    "ImportOutcome",
    "ImportReport",
    "ImportPreviewRow",
    "ImportPreview",
    "ImportConfirmRequest",
    "FailuresReportRequest",
]
