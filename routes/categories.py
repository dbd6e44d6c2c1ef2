"""
Category API routes.

Read-only: lists the codes merchants can use in the Category Code column.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from exceptions import AppError
from models.category import CategoryListResponse
from services.category_service import get_category_service

router = APIRouter()
logger = structlog.get_logger(__name__)


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


@router.get("", response_model=CategoryListResponse)
async def list_categories():
    """List active categories ordered by code."""
    try:
        categories = get_category_service().get_all()
        return CategoryListResponse(data=categories, total=len(categories))
    except Exception as e:
        return handle_error(e)
