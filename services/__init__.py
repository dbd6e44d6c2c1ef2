"""
Business logic services.

Each service handles one domain area.
"""

from services.product_service import ProductService, get_product_service
from services.category_service import CategoryService, get_category_service
from services.catalog_reconciler import ReconcileDecision, ReconciledCandidate, reconcile
from services.export_service import ExportService, get_export_service
from services.upload_history_service import UploadHistoryService, get_upload_history_service
from services.import_service import ImportService, ImportStage, get_import_service

__all__ = [
    "ProductService",
    "get_product_service",
    "CategoryService",
    "get_category_service",
    "ReconcileDecision",
    "ReconciledCandidate",
    "reconcile",
    "ExportService",
    "get_export_service",
    "UploadHistoryService",
    "get_upload_history_service",
    "ImportService",
    "ImportStage",
    "get_import_service",
]
