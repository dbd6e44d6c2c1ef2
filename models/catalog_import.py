"""
Catalog import schemas for validation and serialization.

The ImportReport is the contract returned to merchants after a batch:
one outcome per parsed row, keyed by the original spreadsheet row number
so only failing rows need to be corrected and resubmitted.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

from models.base import BaseSchema


class RowErrorCode(str, Enum):
    """Per-row error codes reported back to the merchant."""
    # Validation
    MISSING_REQUIRED = "MISSING_REQUIRED"
    INVALID_NUMBER = "INVALID_NUMBER"
    UNKNOWN_CATEGORY = "UNKNOWN_CATEGORY"
    INVALID_NAME = "INVALID_NAME"
    INVALID_SKU = "INVALID_SKU"
    INVALID_URL = "INVALID_URL"
    INVALID_JSON = "INVALID_JSON"
    INVALID_BOOLEAN = "INVALID_BOOLEAN"
    INVALID_CURRENCY = "INVALID_CURRENCY"
    TOO_LONG = "TOO_LONG"

    # Reconciliation
    DUPLICATE_IN_BATCH = "DUPLICATE_IN_BATCH"
    SKU_CONFLICT = "SKU_CONFLICT"

    # Store write
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"


class ImportOutcomeStatus(str, Enum):
    """What happened to a single row."""
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class BatchStatus(str, Enum):
    """Overall batch result."""
    SUCCESS = "SUCCESS"      # every row created or updated
    PARTIAL = "PARTIAL"      # some rows written, some not
    FAILED = "FAILED"        # rows present, none written
    EMPTY = "EMPTY"          # no data rows


class PlannedAction(str, Enum):
    """What a confirmed preview would do with a row."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    SKIP = "SKIP"
    INVALID = "INVALID"


class RowErrorResponse(BaseSchema):
    """Single field-level problem on a row."""
    row_index: int = Field(..., ge=1, description="Spreadsheet row number (header is row 1)")
    field: str = Field(..., description="Column key the error refers to")
    code: RowErrorCode
    message: str


class ImportOutcome(BaseSchema):
    """Outcome of one row."""
    row_index: int = Field(..., ge=1, description="Spreadsheet row number (header is row 1)")
    status: ImportOutcomeStatus
    sku: Optional[str] = None
    name: Optional[str] = None
    product_id: Optional[str] = Field(None, description="Catalog product written for this row")
    reason: Optional[RowErrorCode] = Field(None, description="Why the row was skipped or failed")
    errors: list[RowErrorResponse] = Field(default_factory=list)


class ImportReport(BaseSchema):
    """
    Batch-level result of an import.

    Built only from outcomes, so counts always agree with the rows listed.
    """
    total_rows: int = Field(..., ge=0)
    created: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    status: BatchStatus
    outcomes: list[ImportOutcome] = Field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: list[ImportOutcome]) -> "ImportReport":
        """Aggregate per-row outcomes into a report ordered by row."""
        ordered = sorted(outcomes, key=lambda o: o.row_index)
        counts = {status: 0 for status in ImportOutcomeStatus}
        for outcome in ordered:
            counts[outcome.status] += 1

        written = counts[ImportOutcomeStatus.CREATED] + counts[ImportOutcomeStatus.UPDATED]
        if not ordered:
            status = BatchStatus.EMPTY
        elif written == len(ordered):
            status = BatchStatus.SUCCESS
        elif written == 0:
            status = BatchStatus.FAILED
        else:
            status = BatchStatus.PARTIAL

        return cls(
            total_rows=len(ordered),
            created=counts[ImportOutcomeStatus.CREATED],
            updated=counts[ImportOutcomeStatus.UPDATED],
            skipped=counts[ImportOutcomeStatus.SKIPPED],
            failed=counts[ImportOutcomeStatus.FAILED],
            status=status,
            outcomes=ordered,
        )

    @property
    def unsuccessful(self) -> list[ImportOutcome]:
        """Rows the merchant needs to fix and resubmit."""
        return [
            o for o in self.outcomes
            if o.status in (ImportOutcomeStatus.SKIPPED, ImportOutcomeStatus.FAILED)
        ]


class ImportPreviewRow(BaseSchema):
    """One row of a dry-run import."""
    row_index: int = Field(..., ge=1)
    action: PlannedAction
    sku: Optional[str] = None
    name: Optional[str] = None
    category_code: Optional[str] = None
    price: Optional[float] = None
    stock: Optional[int] = None
    variant_count: int = Field(0, ge=0)
    product_id: Optional[str] = Field(None, description="Existing product that would be updated")
    reason: Optional[RowErrorCode] = None
    errors: list[RowErrorResponse] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list, description="Non-blocking notes about this row")


class ImportPreview(BaseSchema):
    """Dry-run result, cached until confirmed or expired."""
    preview_id: str
    expires_in_minutes: int
    total_rows: int
    planned_creates: int
    planned_updates: int
    skipped: int
    invalid: int
    warnings: list[str] = Field(default_factory=list)
    rows: list[ImportPreviewRow] = Field(default_factory=list)


class ImportConfirmRequest(BaseModel):
    """Confirm a cached preview."""
    merchant_id: str = Field(..., min_length=1)


class FailuresReportRequest(BaseModel):
    """Render the unsuccessful rows of a report as a download."""
    outcomes: list[ImportOutcome] = Field(..., description="Outcomes from an ImportReport")
    format: Literal["csv", "xlsx"] = "csv"
