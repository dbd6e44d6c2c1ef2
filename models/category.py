"""
Category schemas.

Categories are managed outside this service; imports only read them to
resolve the Category Code column.
"""

from pydantic import Field
from typing import Optional

from models.base import BaseSchema


class CategoryResponse(BaseSchema):
    """Category as stored."""

    id: str = Field(..., description="Category UUID")
    code: str = Field(..., description="Code merchants put in the Category Code column")
    name: str
    name_ar: Optional[str] = Field(None, description="Arabic display name")


class CategoryListResponse(BaseSchema):
    """All categories available to imports."""

    data: list[CategoryResponse]
    total: int
