"""
Unit tests for the import row validator.

Rows are built directly as RawRow so each rule can be exercised alone.
"""

import json

import pytest

from models.catalog_import import RowErrorCode
from parsers.import_schema import MAX_VARIANTS, build_product_schema
from parsers.row_parser import RawRow
from parsers.row_validator import validate_row, validate_rows


CATEGORY_CODES = ["MEN-CLOTHING", "PERFUME"]


@pytest.fixture
def schema():
    return build_product_schema(["USD", "SDG", "SAR"])


def make_row(row_index: int = 2, **overrides) -> RawRow:
    """A valid raw row, as the parser would produce from an XLSX."""
    values = {
        "sku": "shirt-001",
        "name": "قميص قطني",
        "description": None,
        "price": 25.5,
        "currency": None,
        "category": "MEN-CLOTHING",
        "stock": 5,
        "image_urls": None,
        "attributes": None,
        "variants": None,
        "active": None,
    }
    values.update(overrides)
    return RawRow(row_index=row_index, values=values)


def error_codes(result) -> dict:
    return {e.field: e.code for e in result.errors}


# ===================
# VALID ROWS
# ===================

class TestValidRows:
    """Tests for rows that produce a candidate."""

    def test_minimal_row_defaults(self, schema):
        result = validate_row(make_row(sku=None, stock=None), schema, CATEGORY_CODES, "SDG")

        assert result.is_valid
        candidate = result.candidate
        assert candidate.sku is None
        assert candidate.stock == 0
        assert candidate.currency == "SDG"
        assert candidate.active is True
        assert candidate.image_urls == ()
        assert candidate.attributes == {}

    def test_sku_uppercased(self, schema):
        result = validate_row(make_row(sku="shirt-001"), schema, CATEGORY_CODES)

        assert result.candidate.sku == "SHIRT-001"

    def test_numeric_sku_cell_becomes_text(self, schema):
        """Excel stores 1001 as a number; it must not become '1001.0'."""
        result = validate_row(make_row(sku=1001.0), schema, CATEGORY_CODES)

        assert result.candidate.sku == "1001"

    def test_category_matched_case_insensitively(self, schema):
        result = validate_row(make_row(category="men-clothing"), schema, CATEGORY_CODES)

        assert result.candidate.category_code == "MEN-CLOTHING"

    def test_name_bidi_marks_and_whitespace_removed(self, schema):
        result = validate_row(make_row(name="\u200f قميص   قطني \u200f"), schema, CATEGORY_CODES)

        assert result.candidate.name == "قميص قطني"

    @pytest.mark.parametrize("raw, expected", [
        ("19.99", 19.99),
        ("1,250.50", 1250.5),
        ("٩٩٫٥", 99.5),
        (12, 12.0),
    ])
    def test_price_formats(self, schema, raw, expected):
        result = validate_row(make_row(price=raw), schema, CATEGORY_CODES)

        assert result.candidate.price == expected

    def test_stock_text_whole_number(self, schema):
        result = validate_row(make_row(stock="7"), schema, CATEGORY_CODES)

        assert result.candidate.stock == 7

    def test_image_urls_split_and_deduplicated(self, schema):
        urls = "https://a.example.com/1.jpg | http://a.example.com/2.jpg|https://a.example.com/1.jpg|"
        result = validate_row(make_row(image_urls=urls), schema, CATEGORY_CODES)

        assert result.candidate.image_urls == (
            "https://a.example.com/1.jpg",
            "http://a.example.com/2.jpg",
        )

    def test_attributes_values_become_text(self, schema):
        result = validate_row(
            make_row(attributes='{"size": 42, "color": "أسود"}'), schema, CATEGORY_CODES
        )

        assert result.candidate.attributes == {"size": "42", "color": "أسود"}

    @pytest.mark.parametrize("raw, expected", [
        ("yes", True), ("No", False), ("TRUE", True), ("false", False),
        ("1", True), ("0", False), (1, True), (0, False), (True, True),
        ("نعم", True), ("لا", False),
    ])
    def test_boolean_spellings(self, schema, raw, expected):
        result = validate_row(make_row(active=raw), schema, CATEGORY_CODES)

        assert result.candidate.active is expected

    def test_currency_normalized(self, schema):
        result = validate_row(make_row(currency="sar"), schema, CATEGORY_CODES)

        assert result.candidate.currency == "SAR"


# ===================
# INVALID ROWS
# ===================

class TestInvalidRows:
    """Tests for each rule producing its error code."""

    @pytest.mark.parametrize("field", ["name", "price", "category"])
    def test_blank_required_field(self, schema, field):
        result = validate_row(make_row(**{field: None}), schema, CATEGORY_CODES)

        assert not result.is_valid
        assert result.candidate is None
        assert error_codes(result)[field] == RowErrorCode.MISSING_REQUIRED

    @pytest.mark.parametrize("price", ["abc", -5, 0, "0", True, float("nan"), 0.004, "0.004"])
    def test_bad_price(self, schema, price):
        result = validate_row(make_row(price=price), schema, CATEGORY_CODES)

        assert error_codes(result) == {"price": RowErrorCode.INVALID_NUMBER}

    @pytest.mark.parametrize("stock", [-1, 2.5, "many", "-3"])
    def test_bad_stock(self, schema, stock):
        result = validate_row(make_row(stock=stock), schema, CATEGORY_CODES)

        assert error_codes(result) == {"stock": RowErrorCode.INVALID_NUMBER}

    def test_unknown_category(self, schema):
        result = validate_row(make_row(category="SHOES"), schema, CATEGORY_CODES)

        assert error_codes(result) == {"category": RowErrorCode.UNKNOWN_CATEGORY}

    def test_name_only_invisible_characters(self, schema):
        result = validate_row(make_row(name="\u200f\u200e"), schema, CATEGORY_CODES)

        assert error_codes(result) == {"name": RowErrorCode.INVALID_NAME}

    def test_name_too_long(self, schema):
        result = validate_row(make_row(name="x" * 201), schema, CATEGORY_CODES)

        assert error_codes(result) == {"name": RowErrorCode.INVALID_NAME}

    @pytest.mark.parametrize("sku", ["has space", "-LEADING", "SKU/1", "x" * 65])
    def test_bad_sku(self, schema, sku):
        result = validate_row(make_row(sku=sku), schema, CATEGORY_CODES)

        assert error_codes(result) == {"sku": RowErrorCode.INVALID_SKU}

    def test_description_too_long(self, schema):
        result = validate_row(make_row(description="d" * 5001), schema, CATEGORY_CODES)

        assert error_codes(result) == {"description": RowErrorCode.TOO_LONG}

    @pytest.mark.parametrize("urls", ["ftp://a.example.com/x.jpg", "not a url", "https://ok.example.com/a.jpg|www.x.com"])
    def test_bad_image_url(self, schema, urls):
        result = validate_row(make_row(image_urls=urls), schema, CATEGORY_CODES)

        assert error_codes(result) == {"image_urls": RowErrorCode.INVALID_URL}

    @pytest.mark.parametrize("attributes", ["{not json", "[1, 2]", '{"nested": {"a": 1}}', '"text"'])
    def test_bad_attributes(self, schema, attributes):
        result = validate_row(make_row(attributes=attributes), schema, CATEGORY_CODES)

        assert error_codes(result) == {"attributes": RowErrorCode.INVALID_JSON}

    def test_bad_boolean(self, schema):
        result = validate_row(make_row(active="maybe"), schema, CATEGORY_CODES)

        assert error_codes(result) == {"active": RowErrorCode.INVALID_BOOLEAN}

    def test_unsupported_currency(self, schema):
        result = validate_row(make_row(currency="EUR"), schema, CATEGORY_CODES)

        assert error_codes(result) == {"currency": RowErrorCode.INVALID_CURRENCY}

    def test_all_errors_reported_at_once(self, schema):
        """Every field is checked even after the first failure."""
        result = validate_row(
            make_row(name=None, price=-1, category="NOPE", active="maybe"),
            schema,
            CATEGORY_CODES,
        )

        assert error_codes(result) == {
            "name": RowErrorCode.MISSING_REQUIRED,
            "price": RowErrorCode.INVALID_NUMBER,
            "category": RowErrorCode.UNKNOWN_CATEGORY,
            "active": RowErrorCode.INVALID_BOOLEAN,
        }
        assert all(e.row_index == 2 for e in result.errors)

    def test_invalid_row_keeps_sku_and_name_for_report(self, schema):
        result = validate_row(make_row(sku="abc-1", price="x"), schema, CATEGORY_CODES)

        assert result.sku == "ABC-1"
        assert result.name == "قميص قطني"

    def test_price_below_one_cent_is_a_validation_error(self, schema):
        """Rounding to cents happens before the > 0 check."""
        result = validate_row(make_row(price=0.004), schema, CATEGORY_CODES)

        assert result.candidate is None
        assert result.errors[0].message == "Price must be at least 0.01"

    def test_smallest_price_accepted(self, schema):
        result = validate_row(make_row(price="0.01"), schema, CATEGORY_CODES)

        assert result.candidate.price == 0.01


# ===================
# VARIANTS
# ===================

class TestVariants:
    """Tests for the Variants column."""

    def test_variants_parsed_and_normalized(self, schema):
        variants = json.dumps([
            {"sku": "shirt-001-m", "attributes": {"size": "M"}, "price": "27", "stock": 4},
            {"sku": "shirt-001-l", "attributes": {"size": "L", "chest": 104}, "active": "no",
             "images": ["https://a.example.com/l.jpg"]},
        ])

        result = validate_row(make_row(variants=variants), schema, CATEGORY_CODES)

        assert result.is_valid, result.errors
        medium, large = result.candidate.variants
        assert medium.sku == "SHIRT-001-M"
        assert medium.price == 27.0
        assert medium.stock == 4
        assert large.attributes == {"size": "L", "chest": "104"}
        assert large.stock == 0
        assert large.active is False
        assert large.images == ("https://a.example.com/l.jpg",)

    def test_variant_price_defaults_to_product_price(self, schema):
        result = validate_row(
            make_row(price=25.5, variants='[{"sku": "V-1"}]'), schema, CATEGORY_CODES
        )

        assert result.candidate.variants[0].price == 25.5

    def test_merchant_price_key_accepted(self, schema):
        result = validate_row(
            make_row(variants='[{"merchantPrice": 30}]'), schema, CATEGORY_CODES
        )

        assert result.candidate.variants[0].price == 30.0

    def test_blank_cell_means_no_variants(self, schema):
        result = validate_row(make_row(variants=None), schema, CATEGORY_CODES)

        assert result.candidate.variants == ()

    @pytest.mark.parametrize("variants", ["not json", '{"sku": "V-1"}', "[1, 2"])
    def test_malformed_variants_cell(self, schema, variants):
        result = validate_row(make_row(variants=variants), schema, CATEGORY_CODES)

        assert error_codes(result) == {"variants": RowErrorCode.INVALID_JSON}

    def test_each_bad_variant_field_reported_with_its_index(self, schema):
        variants = json.dumps([
            {"sku": "OK-1", "price": 10},
            {"sku": "X" * 65, "price": -1, "stock": 1.5},
            "not an object",
            {"images": ["ftp://a.example.com/x.jpg"], "active": "maybe", "attributes": ["red"]},
        ])

        result = validate_row(make_row(variants=variants), schema, CATEGORY_CODES)

        assert result.candidate is None
        assert error_codes(result) == {
            "variants[1].sku": RowErrorCode.INVALID_SKU,
            "variants[1].price": RowErrorCode.INVALID_NUMBER,
            "variants[1].stock": RowErrorCode.INVALID_NUMBER,
            "variants[2]": RowErrorCode.INVALID_JSON,
            "variants[3].images": RowErrorCode.INVALID_URL,
            "variants[3].active": RowErrorCode.INVALID_BOOLEAN,
            "variants[3].attributes": RowErrorCode.INVALID_JSON,
        }

    def test_variant_price_below_one_cent_rejected(self, schema):
        result = validate_row(
            make_row(variants='[{"price": 0.004}]'), schema, CATEGORY_CODES
        )

        assert error_codes(result) == {"variants[0].price": RowErrorCode.INVALID_NUMBER}

    def test_repeated_variant_sku(self, schema):
        result = validate_row(
            make_row(variants='[{"sku": "v-1"}, {"sku": "V-1"}]'), schema, CATEGORY_CODES
        )

        assert error_codes(result) == {"variants[1].sku": RowErrorCode.INVALID_SKU}

    def test_too_many_variants(self, schema):
        variants = json.dumps([{"stock": 1}] * (MAX_VARIANTS + 1))

        result = validate_row(make_row(variants=variants), schema, CATEGORY_CODES)

        assert error_codes(result) == {"variants": RowErrorCode.TOO_LONG}


# ===================
# WARNINGS
# ===================

class TestRowWarnings:
    """Non-blocking notes on otherwise valid rows."""

    def test_missing_description_and_images_warned(self, schema):
        result = validate_row(make_row(description=None, image_urls=None), schema, CATEGORY_CODES)

        assert result.is_valid
        assert result.warnings == [
            "Description is empty",
            "No image URLs; the product is listed without photos",
        ]
        assert result.candidate.warnings == tuple(result.warnings)

    def test_complete_row_has_no_warnings(self, schema):
        result = validate_row(
            make_row(description="Cotton", image_urls="https://a.example.com/1.jpg"),
            schema,
            CATEGORY_CODES,
        )

        assert result.warnings == []

    def test_invalid_row_still_reports_warnings(self, schema):
        result = validate_row(make_row(price="x"), schema, CATEGORY_CODES)

        assert not result.is_valid
        assert "Description is empty" in result.warnings


# ===================
# BATCH
# ===================

class TestValidateRows:
    """Tests for validate_rows()"""

    def test_preserves_order_and_is_independent_per_row(self, schema):
        rows = [
            make_row(2, sku="A"),
            make_row(3, sku="A"),  # duplicates are not the validator's concern
            make_row(4, price=None),
        ]

        results = validate_rows(rows, schema, CATEGORY_CODES)

        assert [r.row_index for r in results] == [2, 3, 4]
        assert [r.is_valid for r in results] == [True, True, False]
