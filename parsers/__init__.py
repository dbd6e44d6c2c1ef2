"""
Import file parsers module.

Schema, template generation, row parsing and row validation for
bulk product import spreadsheets.
"""

from parsers.import_schema import (
    ColumnSchema,
    ColumnSpec,
    ColumnType,
    build_product_schema,
    get_product_import_schema,
)
from parsers.template_generator import (
    generate_template,
    generate_csv_template,
)
from parsers.row_parser import (
    ParseFailure,
    RawRow,
    parse_import_file,
)
from parsers.row_validator import (
    CandidateProduct,
    CandidateVariant,
    RowError,
    ValidationResult,
    validate_row,
    validate_rows,
)

__all__ = [
    "ColumnSchema",
    "ColumnSpec",
    "ColumnType",
    "build_product_schema",
    "get_product_import_schema",
    "generate_template",
    "generate_csv_template",
    "ParseFailure",
    "RawRow",
    "parse_import_file",
    "CandidateProduct",
    "CandidateVariant",
    "RowError",
    "ValidationResult",
    "validate_row",
    "validate_rows",
]
