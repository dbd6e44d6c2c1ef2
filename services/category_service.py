"""
Category service for read-only operations on the categories table.

Categories are managed in the admin dashboard; imports only need the
code lookup.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import DatabaseError
from models.category import CategoryResponse

logger = structlog.get_logger(__name__)


class CategoryService:
    """
    Category lookups.

    Handles read operations for categories.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "categories"

    def get_all(self, active_only: bool = True) -> list[CategoryResponse]:
        """
        Get categories ordered by code.

        Args:
            active_only: Skip categories merchants can no longer assign

        Returns:
            List of CategoryResponse
        """
        logger.info("getting_all_categories", active_only=active_only)

        try:
            query = self.db.table(self.table).select("*")
            if active_only:
                query = query.eq("active", True)
            result = query.order("code").execute()

            categories = [CategoryResponse(**row) for row in result.data]
            logger.info("categories_retrieved", count=len(categories))
            return categories

        except Exception as e:
            logger.error("get_all_categories_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_code_index(self) -> dict[str, CategoryResponse]:
        """
        Map each category code to its category.

        Returns:
            Dict of code -> CategoryResponse (codes as stored)
        """
        return {category.code: category for category in self.get_all()}


# Singleton instance
_service: Optional[CategoryService] = None


def get_category_service() -> CategoryService:
    """Get or create CategoryService instance."""
    global _service
    if _service is None:
        _service = CategoryService()
    return _service
