"""
Template generator for bulk product import.

Builds the spreadsheet merchants download, fill in, and upload back.
Everything is derived from the ColumnSchema, so the row parser always
accepts what this module produces.
"""

import json
from io import BytesIO, StringIO
from typing import Optional, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation
import structlog

from models.category import CategoryResponse
from parsers.import_schema import ColumnSchema, ColumnType, IMAGE_URL_SEPARATOR

logger = structlog.get_logger(__name__)

PRODUCTS_SHEET = "Products"
CATEGORIES_SHEET = "Categories"
INSTRUCTIONS_SHEET = "Instructions"

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLSX_FILENAME = "product-import-template.xlsx"
CSV_FILENAME = "product-import-template.csv"

FALLBACK_CATEGORY_CODE = "GENERAL"

# Rows covered by the dropdowns on the Products sheet
DROPDOWN_ROWS = 1000


def example_row(
    schema: ColumnSchema,
    category_code: str = FALLBACK_CATEGORY_CODE,
    currency: str = "USD",
) -> dict:
    """
    Example product demonstrating every column's expected format.

    Returns:
        Dict keyed by column key, values typed as a merchant would enter them
    """
    values = {
        "sku": "PROD-001",
        "name": "قميص قطني رجالي",
        "description": "Men's cotton shirt, regular fit",
        "price": 99.99,
        "currency": currency,
        "category": category_code,
        "stock": 100,
        "image_urls": IMAGE_URL_SEPARATOR.join([
            "https://example.com/images/prod-001-front.jpg",
            "https://example.com/images/prod-001-back.jpg",
        ]),
        "attributes": json.dumps({"color": "white", "size": "M"}, ensure_ascii=False),
        "variants": json.dumps([
            {"sku": "PROD-001-M", "attributes": {"size": "M"}, "price": 99.99, "stock": 60},
            {"sku": "PROD-001-L", "attributes": {"size": "L"}, "price": 109.99, "stock": 40},
        ]),
        "active": "yes",
    }
    return {key: values.get(key, "") for key in schema.keys}


def generate_template(
    schema: ColumnSchema,
    categories: Optional[Sequence[CategoryResponse]] = None,
    default_currency: str = "USD",
) -> bytes:
    """
    Generate the XLSX import template.

    Args:
        schema: Column schema (header order and labels)
        categories: Valid categories for the reference sheet; omitted if None
        default_currency: Currency shown in the example row

    Returns:
        XLSX file contents
    """
    categories = list(categories or [])
    example_code = categories[0].code if categories else FALLBACK_CATEGORY_CODE

    logger.info(
        "generating_import_template",
        columns=len(schema),
        categories=len(categories),
    )

    wb = Workbook()
    ws = wb.active
    ws.title = PRODUCTS_SHEET

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
    required_fill = PatternFill(start_color="C00000", end_color="C00000", fill_type="solid")

    # Row 1: headers, exactly in schema order
    for col_idx, column in enumerate(schema, start=1):
        cell = ws.cell(row=1, column=col_idx, value=column.header)
        cell.font = header_font
        cell.fill = required_fill if column.required else header_fill
        cell.alignment = Alignment(horizontal="center")
        ws.column_dimensions[get_column_letter(col_idx)].width = max(len(column.header) + 4, 18)

    # Row 2: example
    example = example_row(schema, example_code, default_currency)
    for col_idx, column in enumerate(schema, start=1):
        ws.cell(row=2, column=col_idx, value=example[column.key])

    ws.freeze_panes = "A2"

    _add_dropdowns(ws, schema, len(categories))

    if categories:
        _add_categories_sheet(wb, categories, header_font, header_fill)

    _add_instructions_sheet(wb, schema, header_font, header_fill)

    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def generate_csv_template(
    schema: ColumnSchema,
    category_code: str = FALLBACK_CATEGORY_CODE,
    default_currency: str = "USD",
) -> bytes:
    """
    Generate the CSV import template.

    Encoded as UTF-8 with BOM so Excel shows Arabic text correctly.
    """
    example = example_row(schema, category_code, default_currency)
    df = pd.DataFrame(
        [[example[key] for key in schema.keys]],
        columns=schema.headers,
    )
    buffer = StringIO()
    df.to_csv(buffer, index=False)
    return buffer.getvalue().encode("utf-8-sig")


# ===================
# HELPER FUNCTIONS
# ===================

def _add_dropdowns(ws, schema: ColumnSchema, category_count: int) -> None:
    """Spreadsheet-side dropdowns. Advisory only; the server re-validates."""
    last_row = DROPDOWN_ROWS + 1

    for col_idx, column in enumerate(schema, start=1):
        letter = get_column_letter(col_idx)
        cell_range = f"{letter}2:{letter}{last_row}"

        if column.key == "category" and category_count:
            formula = f"={CATEGORIES_SHEET}!$A$2:$A${category_count + 1}"
        elif column.type == ColumnType.BOOLEAN:
            formula = '"yes,no"'
        elif column.type == ColumnType.ENUM and column.enum_values:
            formula = '"' + ",".join(sorted(column.enum_values)) + '"'
        else:
            continue

        validation = DataValidation(type="list", formula1=formula, allow_blank=True)
        validation.add(cell_range)
        ws.add_data_validation(validation)


def _add_categories_sheet(wb: Workbook, categories: list[CategoryResponse], header_font, header_fill) -> None:
    """Reference sheet listing valid category codes."""
    ws = wb.create_sheet(CATEGORIES_SHEET)
    for col_idx, header in enumerate(["Code", "Name", "الاسم"], start=1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        ws.column_dimensions[get_column_letter(col_idx)].width = 28

    for row_idx, category in enumerate(categories, start=2):
        ws.cell(row=row_idx, column=1, value=category.code)
        ws.cell(row=row_idx, column=2, value=category.name)
        ws.cell(row=row_idx, column=3, value=category.name_ar or "")


def _add_instructions_sheet(wb: Workbook, schema: ColumnSchema, header_font, header_fill) -> None:
    """One line per column: required flag, type, allowed values, help text."""
    ws = wb.create_sheet(INSTRUCTIONS_SHEET)
    headers = ["Column", "Required", "Type", "Allowed values", "Notes"]
    widths = [18, 10, 10, 30, 80]
    for col_idx, (header, width) in enumerate(zip(headers, widths), start=1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    for row_idx, column in enumerate(schema, start=2):
        if column.key == "category":
            allowed = f"See {CATEGORIES_SHEET} sheet"
        elif column.enum_values:
            allowed = ", ".join(sorted(column.enum_values))
        else:
            allowed = ""

        ws.cell(row=row_idx, column=1, value=column.header)
        ws.cell(row=row_idx, column=2, value="yes" if column.required else "no")
        ws.cell(row=row_idx, column=3, value=column.type.value)
        ws.cell(row=row_idx, column=4, value=allowed)
        ws.cell(row=row_idx, column=5, value=column.description)
