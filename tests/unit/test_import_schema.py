"""
Unit tests for the import column schema.
"""

import pytest

from parsers.import_schema import (
    ColumnSchema,
    ColumnSpec,
    ColumnType,
    build_product_schema,
    get_product_import_schema,
)


class TestProductSchema:
    """Tests for the product column layout."""

    def test_columns_in_template_order(self):
        schema = build_product_schema(["USD"])

        assert schema.keys == [
            "sku", "name", "description", "price", "currency",
            "category", "stock", "image_urls", "attributes", "variants", "active",
        ]
        assert schema.headers[0] == "SKU"
        assert schema.headers[5] == "Category Code"

    def test_required_columns(self):
        schema = build_product_schema(["USD"])

        assert [c.key for c in schema.required] == ["name", "price", "category"]

    def test_currency_values_uppercased(self):
        schema = build_product_schema(["usd", "sdg"])

        assert schema["currency"].enum_values == frozenset({"USD", "SDG"})

    def test_cached_schema_uses_settings_currencies(self):
        schema = get_product_import_schema()

        assert "USD" in schema["currency"].enum_values


class TestColumnSchemaConstruction:
    """Tests for uniqueness checks."""

    def test_duplicate_key_rejected(self):
        """Two columns with the same key are a programming error."""
        columns = (
            ColumnSpec(key="name", header="Name", required=True, type=ColumnType.TEXT),
            ColumnSpec(key="name", header="Title", required=False, type=ColumnType.TEXT),
        )

        with pytest.raises(ValueError):
            ColumnSchema(columns)

    def test_duplicate_header_rejected_after_normalization(self):
        columns = (
            ColumnSpec(key="name", header="Name", required=True, type=ColumnType.TEXT),
            ColumnSpec(key="title", header=" NAME ", required=False, type=ColumnType.TEXT),
        )

        with pytest.raises(ValueError):
            ColumnSchema(columns)


class TestHeaderMatching:
    """Tests for ColumnSchema.match_header()"""

    @pytest.mark.parametrize("raw, key", [
        ("SKU", "sku"),
        ("sku", "sku"),
        ("  Category Code ", "category"),
        ("category_code", "category"),
        ("category", "category"),
        ("IMAGE URLS", "image_urls"),
        ("image_urls", "image_urls"),
        ("\u200fName", "name"),
    ])
    def test_matches_label_or_key(self, raw, key):
        schema = build_product_schema(["USD"])

        assert schema.match_header(raw).key == key

    def test_unknown_header_returns_none(self):
        schema = build_product_schema(["USD"])

        assert schema.match_header("Supplier") is None
        assert schema.match_header(None) is None
