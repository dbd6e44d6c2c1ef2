"""
Bulk product import API routes.

Template downloads, one-shot import, the preview-then-confirm flow and
the failures report. The caller is already authenticated; merchant_id
identifies whose catalog is written.
"""

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import JSONResponse, Response
from typing import Optional
import structlog

from config.settings import settings
from exceptions import AppError
from models.catalog_import import (
    FailuresReportRequest,
    ImportConfirmRequest,
    ImportPreview,
    ImportReport,
)
from models.category import CategoryResponse
from parsers.import_schema import get_product_import_schema
from parsers.template_generator import (
    CSV_FILENAME,
    FALLBACK_CATEGORY_CODE,
    XLSX_FILENAME,
    XLSX_MEDIA_TYPE,
    generate_csv_template,
    generate_template,
)
from services.category_service import get_category_service
from services.export_service import get_export_service
from services.import_service import get_import_service

router = APIRouter()
logger = structlog.get_logger(__name__)


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def _download(content: bytes, media_type: str, filename: str, cache: bool = False) -> Response:
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    if cache:
        headers["Cache-Control"] = f"public, max-age={settings.template_cache_seconds}"
    return Response(content=content, media_type=media_type, headers=headers)


def _template_categories() -> list[CategoryResponse]:
    """Categories for the template; the template still downloads if the store is down."""
    try:
        return get_category_service().get_all()
    except AppError as e:
        logger.warning("template_categories_unavailable", error=e.message)
        return []


# ===================
# TEMPLATES
# ===================

@router.get("/template.xlsx")
async def download_template_xlsx():
    """
    Download the Excel import template.

    Products sheet with headers and an example row, plus Categories and
    Instructions reference sheets.
    """
    try:
        content = generate_template(
            get_product_import_schema(),
            categories=_template_categories(),
            default_currency=settings.import_default_currency,
        )
        return _download(content, XLSX_MEDIA_TYPE, XLSX_FILENAME, cache=True)
    except Exception as e:
        return handle_error(e)


@router.get("/template.csv")
async def download_template_csv():
    """Download the CSV import template (UTF-8 with BOM)."""
    try:
        categories = _template_categories()
        content = generate_csv_template(
            get_product_import_schema(),
            category_code=categories[0].code if categories else FALLBACK_CATEGORY_CODE,
            default_currency=settings.import_default_currency,
        )
        return _download(content, "text/csv; charset=utf-8", CSV_FILENAME, cache=True)
    except Exception as e:
        return handle_error(e)


# ===================
# IMPORT
# ===================

@router.post("", response_model=ImportReport)
async def import_products(
    file: UploadFile = File(...),
    merchant_id: str = Form(..., min_length=1),
):
    """
    Import products from an uploaded XLSX or CSV file.

    Rows are written one at a time; the report lists every row's outcome.

    Raises:
        422: File unreadable, missing required columns, too large or too many rows
    """
    try:
        content = await file.read()
        return get_import_service().run_import(content, merchant_id, filename=file.filename)
    except Exception as e:
        return handle_error(e)


@router.post("/preview", response_model=ImportPreview)
async def preview_import(
    file: UploadFile = File(...),
    merchant_id: str = Form(..., min_length=1),
):
    """
    Dry-run an import.

    Nothing is saved until /confirm/{preview_id} is called.
    """
    try:
        content = await file.read()
        return get_import_service().preview(content, merchant_id, filename=file.filename)
    except Exception as e:
        return handle_error(e)


@router.post("/confirm/{preview_id}", response_model=ImportReport)
async def confirm_import(preview_id: str, request: ImportConfirmRequest):
    """
    Commit a previewed import.

    Raises:
        403: Preview belongs to another merchant
        404: Preview expired or already confirmed
    """
    try:
        return get_import_service().commit_preview(preview_id, request.merchant_id)
    except Exception as e:
        logger.error("import_confirm_failed", preview_id=preview_id, error=str(e))
        return handle_error(e)


# ===================
# FAILURES REPORT
# ===================

@router.post("/failures")
async def download_failures(request: FailuresReportRequest):
    """Download the skipped and failed rows of a report as CSV or Excel."""
    try:
        content, media_type, filename = get_export_service().generate_failures_report(
            request.outcomes, request.format
        )
        return _download(content, media_type, filename)
    except Exception as e:
        return handle_error(e)
