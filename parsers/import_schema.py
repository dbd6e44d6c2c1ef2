"""
Column schema for the bulk product import spreadsheet.

This is the contract between the template generator and the row parser:
both read the same ordered ColumnSchema, so a downloaded template always
parses. Header labels are stable; renaming one breaks every template
merchants already have on disk.
"""

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Iterator, Optional

from config.settings import get_settings
from utils.text_utils import normalize_header

MAX_SKU_LENGTH = 64
MAX_NAME_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
SKU_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
IMAGE_URL_SEPARATOR = "|"
MAX_VARIANTS = 100


class ColumnType(str, Enum):
    """How a column's raw cell is interpreted."""
    TEXT = "text"
    NUMBER = "number"
    ENUM = "enum"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class ColumnSpec:
    """One spreadsheet column."""
    key: str
    header: str
    required: bool
    type: ColumnType
    enum_values: Optional[frozenset[str]] = None
    max_length: Optional[int] = None
    description: str = ""

    @property
    def match_names(self) -> frozenset[str]:
        """Normalized header spellings the parser accepts for this column."""
        return frozenset({normalize_header(self.header), normalize_header(self.key)})


class ColumnSchema:
    """
    Ordered, immutable set of columns.

    Raises:
        ValueError: If two columns share a key or a header label
    """

    def __init__(self, columns: tuple[ColumnSpec, ...]):
        keys = [c.key for c in columns]
        headers = [normalize_header(c.header) for c in columns]
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate column keys in schema: {keys}")
        if len(set(headers)) != len(headers):
            raise ValueError(f"Duplicate column headers in schema: {headers}")

        self.columns = columns
        self._by_key = {c.key: c for c in columns}

    def __iter__(self) -> Iterator[ColumnSpec]:
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)

    def __getitem__(self, key: str) -> ColumnSpec:
        return self._by_key[key]

    def __contains__(self, key: str) -> bool:
        return key in self._by_key

    @property
    def keys(self) -> list[str]:
        return [c.key for c in self.columns]

    @property
    def headers(self) -> list[str]:
        return [c.header for c in self.columns]

    @property
    def required(self) -> list[ColumnSpec]:
        return [c for c in self.columns if c.required]

    def match_header(self, raw_header) -> Optional[ColumnSpec]:
        """Find the column a spreadsheet header refers to, if any."""
        normalized = normalize_header(raw_header)
        for column in self.columns:
            if normalized in column.match_names:
                return column
        return None


def build_product_schema(currencies: list[str]) -> ColumnSchema:
    """
    Build the product import schema.

    Category codes are not baked in: they live in the catalog store and
    are supplied at validation time.

    Args:
        currencies: ISO codes accepted in the Currency column
    """
    return ColumnSchema((
        ColumnSpec(
            key="sku",
            header="SKU",
            required=False,
            type=ColumnType.TEXT,
            max_length=MAX_SKU_LENGTH,
            description=(
                "Your product code. Letters, digits, '-' and '_' only. "
                "Rows with a SKU already in your catalog update that product."
            ),
        ),
        ColumnSpec(
            key="name",
            header="Name",
            required=True,
            type=ColumnType.TEXT,
            max_length=MAX_NAME_LENGTH,
            description="Product name as shown in the store (Arabic or English).",
        ),
        ColumnSpec(
            key="description",
            header="Description",
            required=False,
            type=ColumnType.TEXT,
            max_length=MAX_DESCRIPTION_LENGTH,
            description="Long description.",
        ),
        ColumnSpec(
            key="price",
            header="Price",
            required=True,
            type=ColumnType.NUMBER,
            description="Merchant price, greater than zero. Digits only, no currency symbol.",
        ),
        ColumnSpec(
            key="currency",
            header="Currency",
            required=False,
            type=ColumnType.ENUM,
            enum_values=frozenset(c.upper() for c in currencies),
            description="Three-letter currency code. Leave blank for the store default.",
        ),
        ColumnSpec(
            key="category",
            header="Category Code",
            required=True,
            type=ColumnType.ENUM,
            description="One of the codes on the Categories sheet.",
        ),
        ColumnSpec(
            key="stock",
            header="Stock",
            required=False,
            type=ColumnType.NUMBER,
            description="Units available, a whole number. Blank means 0.",
        ),
        ColumnSpec(
            key="image_urls",
            header="Image URLs",
            required=False,
            type=ColumnType.TEXT,
            description="http(s) image links separated by '|'. The first is the main image.",
        ),
        ColumnSpec(
            key="attributes",
            header="Attributes",
            required=False,
            type=ColumnType.TEXT,
            description='JSON object of text values, e.g. {"color": "black", "size": "M"}.',
        ),
        ColumnSpec(
            key="variants",
            header="Variants",
            required=False,
            type=ColumnType.TEXT,
            description=(
                'JSON list of variants, e.g. [{"sku": "PROD-001-M", "attributes": {"size": "M"}, '
                '"price": 99.99, "stock": 10}]. Variant price defaults to the product price.'
            ),
        ),
        ColumnSpec(
            key="active",
            header="Active",
            required=False,
            type=ColumnType.BOOLEAN,
            description="yes/no (or نعم/لا). Blank means yes.",
        ),
    ))


@lru_cache()
def get_product_import_schema() -> ColumnSchema:
    """Process-wide product import schema built from settings."""
    return build_product_schema(get_settings().import_currencies)
