"""
Export service — Generate import failure reports.

Turns the unsuccessful rows of an ImportReport into a CSV or Excel file
the merchant can fix against their original spreadsheet.
"""

from io import BytesIO, StringIO
from typing import Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
import structlog

from models.catalog_import import ImportOutcome, ImportOutcomeStatus

logger = structlog.get_logger(__name__)

FAILURE_COLUMNS = ["Row", "SKU", "Name", "Status", "Reason", "Errors"]
COLUMN_WIDTHS = [8, 20, 40, 10, 22, 80]

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

UNSUCCESSFUL = (ImportOutcomeStatus.SKIPPED, ImportOutcomeStatus.FAILED)


def failure_rows(outcomes: list[ImportOutcome]) -> list[list]:
    """Flatten unsuccessful outcomes into report rows, ordered by row number."""
    rows = []
    for outcome in sorted(outcomes, key=lambda o: o.row_index):
        if outcome.status not in UNSUCCESSFUL:
            continue
        errors = "; ".join(f"{e.field}: {e.message}" for e in outcome.errors)
        rows.append([
            outcome.row_index,
            outcome.sku or "",
            outcome.name or "",
            outcome.status.value,
            outcome.reason.value if outcome.reason else "",
            errors,
        ])
    return rows


class ExportService:
    """Service for generating import report files."""

    def generate_failures_csv(self, outcomes: list[ImportOutcome]) -> bytes:
        """
        Failures report as CSV.

        UTF-8 with BOM so Arabic product names open correctly in Excel.
        """
        rows = failure_rows(outcomes)
        logger.info("generating_failures_csv", row_count=len(rows))

        df = pd.DataFrame(rows, columns=FAILURE_COLUMNS)
        buffer = StringIO()
        df.to_csv(buffer, index=False)
        return buffer.getvalue().encode("utf-8-sig")

    def generate_failures_excel(self, outcomes: list[ImportOutcome]) -> bytes:
        """
        Failures report as a single-sheet workbook.

        Args:
            outcomes: Outcomes from an ImportReport (successful rows are dropped)

        Returns:
            XLSX file contents
        """
        rows = failure_rows(outcomes)
        logger.info("generating_failures_excel", row_count=len(rows))

        wb = Workbook()
        ws = wb.active
        ws.title = "Failed Rows"

        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="C00000", end_color="C00000", fill_type="solid")

        for col_idx, (header, width) in enumerate(zip(FAILURE_COLUMNS, COLUMN_WIDTHS), start=1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")
            ws.column_dimensions[get_column_letter(col_idx)].width = width

        for row_idx, values in enumerate(rows, start=2):
            for col_idx, value in enumerate(values, start=1):
                ws.cell(row=row_idx, column=col_idx, value=value)
            ws.cell(row=row_idx, column=len(FAILURE_COLUMNS)).alignment = Alignment(wrap_text=True)

        ws.freeze_panes = "A2"

        output = BytesIO()
        wb.save(output)
        return output.getvalue()

    def generate_failures_report(self, outcomes: list[ImportOutcome], fmt: str = "csv") -> tuple[bytes, str, str]:
        """
        Failures report in the requested format.

        Returns:
            Tuple of (content, media type, filename)
        """
        if fmt == "xlsx":
            return self.generate_failures_excel(outcomes), XLSX_MEDIA_TYPE, "import-failures.xlsx"
        return self.generate_failures_csv(outcomes), CSV_MEDIA_TYPE, "import-failures.csv"


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
