"""
Row parser for bulk product import uploads.

Reads an XLSX, XLS or CSV file into RawRow records, one per non-blank data
row. No coercion or validation happens here: cells come out as the
spreadsheet stored them (text trimmed), and the row validator decides
what they mean.
"""

from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO, StringIO
from typing import Any, Optional
import structlog

import pandas as pd

from config.settings import get_settings
from exceptions import ImportParseError
from parsers.import_schema import ColumnSchema, ColumnSpec
from parsers.template_generator import PRODUCTS_SHEET

logger = structlog.get_logger(__name__)

XLSX_MAGIC = b"PK\x03\x04"
# Legacy Excel 97-2003 workbooks are OLE compound files
XLS_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

# Tried in order; cp1256 is what Arabic Windows Excel writes for "CSV"
CSV_ENCODINGS = ("utf-8-sig", "cp1256")

HEADER_ROW = 1


class ParseFailure(str, Enum):
    """Why a whole file was rejected."""
    UNREADABLE_FILE = "UNREADABLE_FILE"
    MISSING_HEADERS = "MISSING_HEADERS"
    TOO_MANY_ROWS = "TOO_MANY_ROWS"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"


@dataclass
class RawRow:
    """One data row as read from the sheet, keyed by column key."""
    row_index: int
    values: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        return self.values.get(key)


def parse_import_file(
    content: bytes,
    schema: ColumnSchema,
    filename: Optional[str] = None,
    max_rows: Optional[int] = None,
    max_bytes: Optional[int] = None,
) -> list[RawRow]:
    """
    Parse an uploaded import file.

    Args:
        content: Raw upload bytes
        schema: Column schema the headers are matched against
        filename: Original filename, used to tell CSV from Excel
        max_rows: Maximum non-blank data rows (defaults to settings)
        max_bytes: Maximum upload size (defaults to settings)

    Returns:
        RawRow list in file order

    Raises:
        ImportParseError: If the file is unreadable, lacks required
            columns, is too large, or has too many rows
    """
    app_settings = get_settings()
    max_rows = max_rows or app_settings.import_max_rows
    max_bytes = max_bytes or app_settings.import_max_file_bytes

    file_format = _detect_format(content, filename)
    logger.info(
        "parsing_import_file",
        filename=filename,
        file_format=file_format,
        size_bytes=len(content),
    )

    if len(content) > max_bytes:
        raise ImportParseError(
            reason=ParseFailure.FILE_TOO_LARGE.value,
            message=f"File is larger than {max_bytes // (1024 * 1024)} MB",
            details={"size_bytes": len(content), "max_bytes": max_bytes},
        )

    if not content:
        raise ImportParseError(
            reason=ParseFailure.UNREADABLE_FILE.value,
            message="File is empty",
        )

    if file_format in ("xlsx", "xls"):
        df = _read_excel(content, file_format)
    else:
        df = _read_csv(content)

    column_map = _map_columns(df, schema)

    rows: list[RawRow] = []
    for position, record in enumerate(df.itertuples(index=False, name=None)):
        cells = [_clean_cell(value) for value in record]

        # Fully blank rows are not data
        if all(cell is None for cell in cells):
            continue

        if len(rows) >= max_rows:
            logger.warning("import_file_too_many_rows", max_rows=max_rows)
            raise ImportParseError(
                reason=ParseFailure.TOO_MANY_ROWS.value,
                message=f"File has more than {max_rows} product rows",
                details={"max_rows": max_rows},
            )

        rows.append(RawRow(
            row_index=position + HEADER_ROW + 1,
            values={spec.key: cells[idx] for idx, spec in column_map.items()},
        ))

    logger.info(
        "import_file_parsed",
        row_count=len(rows),
        columns=[spec.key for spec in column_map.values()],
    )

    return rows


# ===================
# HELPER FUNCTIONS
# ===================

def _detect_format(content: bytes, filename: Optional[str]) -> str:
    """Decide between xlsx, xls and csv by extension, then by magic number."""
    if filename:
        lower = filename.lower()
        if lower.endswith(".csv"):
            return "csv"
        if lower.endswith((".xlsx", ".xlsm")):
            return "xlsx"
        if lower.endswith(".xls"):
            return "xlsx" if content.startswith(XLSX_MAGIC) else "xls"
    if content.startswith(XLSX_MAGIC):
        return "xlsx"
    if content.startswith(XLS_MAGIC):
        return "xls"
    return "csv"


def _read_excel(content: bytes, file_format: str = "xlsx") -> pd.DataFrame:
    """
    Read the Products sheet (or the first sheet) with untyped cells.

    openpyxl for .xlsx, xlrd for legacy .xls.
    """
    engine = "xlrd" if file_format == "xls" else "openpyxl"
    try:
        excel = pd.ExcelFile(BytesIO(content), engine=engine)
        sheet_name = PRODUCTS_SHEET if PRODUCTS_SHEET in excel.sheet_names else excel.sheet_names[0]
        return excel.parse(sheet_name, dtype=object)
    except Exception as e:
        logger.error("import_excel_read_failed", engine=engine, error=str(e))
        raise ImportParseError(
            reason=ParseFailure.UNREADABLE_FILE.value,
            message="Failed to read Excel file",
            details={"original_error": str(e)},
        )


def _read_csv(content: bytes) -> pd.DataFrame:
    """Read a CSV upload, keeping every cell as text."""
    text = None
    for encoding in CSV_ENCODINGS:
        try:
            text = content.decode(encoding)
            break
        except UnicodeDecodeError:
            continue

    if text is None:
        raise ImportParseError(
            reason=ParseFailure.UNREADABLE_FILE.value,
            message="CSV file is not valid UTF-8 or Windows-1256 text",
        )

    try:
        return pd.read_csv(
            StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except Exception as e:
        logger.error("import_csv_read_failed", error=str(e))
        raise ImportParseError(
            reason=ParseFailure.UNREADABLE_FILE.value,
            message="Failed to read CSV file",
            details={"original_error": str(e)},
        )


def _map_columns(df: pd.DataFrame, schema: ColumnSchema) -> dict[int, ColumnSpec]:
    """
    Map dataframe column positions to schema columns.

    Unknown columns are ignored; the first of duplicated headers wins.

    Raises:
        ImportParseError: If a required column is missing
    """
    column_map: dict[int, ColumnSpec] = {}
    matched_keys: set[str] = set()

    for idx, header in enumerate(df.columns):
        spec = schema.match_header(header)
        if spec is None or spec.key in matched_keys:
            continue
        column_map[idx] = spec
        matched_keys.add(spec.key)

    missing = [c.header for c in schema.required if c.key not in matched_keys]
    if missing:
        logger.warning("import_file_missing_headers", missing=missing)
        raise ImportParseError(
            reason=ParseFailure.MISSING_HEADERS.value,
            message=f"Missing required columns: {', '.join(missing)}",
            details={"missing": missing, "expected": schema.headers},
        )

    return column_map


def _clean_cell(value: Any) -> Any:
    """Blank cells become None; text is trimmed; everything else is verbatim."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value
