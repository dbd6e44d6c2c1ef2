"""
Product schemas for validation and serialization.

Mirrors the catalog store's products table. Imports only ever write
single records through ProductCreate / ProductUpdate.
"""

from pydantic import Field, field_validator
from typing import Optional

from models.base import BaseSchema, TimestampMixin


class ProductVariant(BaseSchema):
    """One sellable variant of a product (size, colour, ...)."""

    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    attributes: dict[str, str] = Field(default_factory=dict)
    price: float = Field(..., gt=0, description="Merchant price of this variant")
    stock: int = Field(0, ge=0)
    images: list[str] = Field(default_factory=list)
    active: bool = True


class ProductUpdate(BaseSchema):
    """
    Mutable product fields.

    An import update is a full replace of these; id, merchant, SKU and
    creation metadata are never touched.
    """

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category_id: str = Field(..., description="Category UUID")
    price: float = Field(..., gt=0, description="Merchant price")
    currency: str = Field(..., pattern="^[A-Z]{3}$")
    stock: int = Field(0, ge=0)
    images: list[str] = Field(default_factory=list)
    attributes: dict[str, str] = Field(default_factory=dict)
    variants: list[ProductVariant] = Field(default_factory=list)
    active: bool = True


class ProductCreate(ProductUpdate):
    """
    Create a new product.

    id is generated by the caller so a SKU-less row still gets a stable
    identifier in the import report.
    """

    id: str = Field(..., description="Product UUID")
    merchant_id: str = Field(..., min_length=1)
    sku: Optional[str] = Field(
        None,
        min_length=1,
        max_length=64,
        description="Merchant SKU (globally unique when present)",
        examples=["PROD-001", "ABAYA-BLK-M"]
    )

    @field_validator("sku")
    @classmethod
    def sku_uppercase(cls, v: Optional[str]) -> Optional[str]:
        """SKU must be uppercase and trimmed."""
        if v is None:
            return v
        return v.upper().strip()


class ProductResponse(BaseSchema, TimestampMixin):
    """
    Product as stored.

    Used for GET responses and as the existing-catalog view during imports.
    """

    id: str = Field(..., description="Product UUID")
    merchant_id: str
    sku: Optional[str] = None
    name: str
    description: Optional[str] = None
    category_id: Optional[str] = None
    price: float
    currency: str = "USD"
    stock: int = 0
    images: list[str] = Field(default_factory=list)
    attributes: dict[str, str] = Field(default_factory=dict)
    variants: list[ProductVariant] = Field(default_factory=list)
    active: bool = True
