"""
Product service for catalog store operations.

Single-record reads and writes against the products table. Bulk imports
go through here one row at a time so each write is its own unit.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
)
from exceptions import (
    ProductNotFoundError,
    ProductSKUExistsError,
    DatabaseError
)

logger = structlog.get_logger(__name__)

# PostgREST puts filter values in the query string; keep IN lists short
SKU_LOOKUP_CHUNK = 200

UNIQUE_VIOLATION = "23505"


class ProductService:
    """
    Product store adapter.

    Handles SKU index lookups and single-product writes.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "products"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_sku_index(self, skus: list[str]) -> dict[str, ProductResponse]:
        """
        Look up existing products for a set of SKUs.

        SKUs are unique across the whole store, so the index may contain
        products owned by other merchants.

        Args:
            skus: Normalized (upper case) SKUs

        Returns:
            Dict of SKU -> ProductResponse for SKUs that exist
        """
        unique_skus = sorted(set(skus))
        if not unique_skus:
            return {}

        logger.debug("getting_sku_index", count=len(unique_skus))

        index: dict[str, ProductResponse] = {}
        try:
            for start in range(0, len(unique_skus), SKU_LOOKUP_CHUNK):
                chunk = unique_skus[start:start + SKU_LOOKUP_CHUNK]
                result = (
                    self.db.table(self.table)
                    .select("*")
                    .in_("sku", chunk)
                    .execute()
                )
                for row in result.data:
                    product = ProductResponse(**row)
                    index[product.sku] = product
        except Exception as e:
            logger.error(
                "get_sku_index_failed",
                count=len(unique_skus),
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        logger.info(
            "sku_index_loaded",
            requested=len(unique_skus),
            found=len(index)
        )
        return index

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: ProductCreate) -> ProductResponse:
        """
        Create a new product.

        Args:
            data: Product creation data (id already assigned)

        Returns:
            Created ProductResponse

        Raises:
            ProductSKUExistsError: If the SKU was taken in the meantime
            DatabaseError: On any other store failure
        """
        logger.info("creating_product", sku=data.sku, merchant_id=data.merchant_id)

        try:
            result = (
                self.db.table(self.table)
                .insert(data.model_dump())
                .execute()
            )
        except Exception as e:
            if _is_unique_violation(e) and data.sku:
                logger.warning("create_product_sku_taken", sku=data.sku)
                raise ProductSKUExistsError(data.sku)
            logger.error(
                "create_product_failed",
                sku=data.sku,
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", "Insert returned no rows")

        product = ProductResponse(**result.data[0])

        logger.info(
            "product_created",
            product_id=product.id,
            sku=product.sku
        )

        return product

    def update(self, product_id: str, data: ProductUpdate) -> ProductResponse:
        """
        Replace a product's mutable fields.

        Every ProductUpdate field is written, including blanks. id,
        merchant, SKU and created_at are left alone.

        Raises:
            ProductNotFoundError: If product doesn't exist
            DatabaseError: On store failure
        """
        logger.info("updating_product", product_id=product_id)

        update_data = data.model_dump()

        try:
            result = (
                self.db.table(self.table)
                .update(update_data)
                .eq("id", product_id)
                .execute()
            )
        except Exception as e:
            logger.error(
                "update_product_failed",
                product_id=product_id,
                error=str(e)
            )
            raise DatabaseError("update", str(e))

        if not result.data:
            raise ProductNotFoundError(product_id)

        product = ProductResponse(**result.data[0])

        logger.info(
            "product_updated",
            product_id=product_id,
            fields=list(update_data.keys())
        )

        return product


def _is_unique_violation(error: Exception) -> bool:
    """Postgres unique_violation, as surfaced by PostgREST."""
    code = getattr(error, "code", None)
    return code == UNIQUE_VIOLATION or "duplicate key" in str(error).lower()


# Singleton instance for convenience
_product_service: Optional[ProductService] = None

def get_product_service() -> ProductService:
    """Get or create ProductService instance."""
    global _product_service
    if _product_service is None:
        _product_service = ProductService()
    return _product_service
