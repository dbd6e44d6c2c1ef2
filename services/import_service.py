"""
Import service for bulk product catalog uploads.

Drives one batch through parse -> validate -> reconcile -> persist and
reports an outcome for every data row. Writes are row-by-row: a failed
row never rolls back rows already committed.
"""

import hashlib
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import structlog

from config.settings import settings
from exceptions import AppError, ImportParseError, ImportSessionNotFoundError, ImportSessionForbiddenError
from models.catalog_import import (
    ImportOutcome,
    ImportOutcomeStatus,
    ImportPreview,
    ImportPreviewRow,
    ImportReport,
    PlannedAction,
    RowErrorCode,
    RowErrorResponse,
)
from models.category import CategoryResponse
from models.product import ProductCreate, ProductUpdate, ProductVariant
from parsers.import_schema import ColumnSchema, get_product_import_schema
from parsers.row_parser import parse_import_file
from parsers.row_validator import RowError, ValidationResult, validate_rows
from services.catalog_reconciler import ReconcileDecision, ReconciledCandidate, reconcile
from services.category_service import CategoryService, get_category_service
from services.product_service import ProductService, get_product_service
from services import preview_cache_service
from services.upload_history_service import get_upload_history_service

logger = structlog.get_logger(__name__)


class ImportStage(str, Enum):
    PARSING = "PARSING"
    VALIDATING = "VALIDATING"
    RECONCILING = "RECONCILING"
    PERSISTING = "PERSISTING"
    DONE = "DONE"


@dataclass
class PreparedBatch:
    """Everything decided before the first write. Cached between preview and confirm."""
    merchant_id: str
    filename: Optional[str]
    file_hash: str
    invalid: list[ValidationResult] = field(default_factory=list)
    reconciled: list[ReconciledCandidate] = field(default_factory=list)
    categories: dict[str, CategoryResponse] = field(default_factory=dict)

    @property
    def total_rows(self) -> int:
        return len(self.invalid) + len(self.reconciled)


class ImportService:
    """
    Bulk import orchestrator.

    The only component that writes to the catalog during an import.
    """

    def __init__(
        self,
        product_service: Optional[ProductService] = None,
        category_service: Optional[CategoryService] = None,
        schema: Optional[ColumnSchema] = None,
    ):
        self.products = product_service or get_product_service()
        self.categories = category_service or get_category_service()
        self.schema = schema or get_product_import_schema()

    # ===================
    # PUBLIC OPERATIONS
    # ===================

    def run_import(
        self,
        content: bytes,
        merchant_id: str,
        filename: Optional[str] = None,
    ) -> ImportReport:
        """
        Import a spreadsheet in one step.

        Args:
            content: Uploaded file bytes
            merchant_id: Merchant whose catalog is written
            filename: Original filename (format detection, history)

        Returns:
            ImportReport, also when every row failed

        Raises:
            ImportParseError: If the file is rejected as a whole
            DatabaseError: If categories or existing SKUs can't be loaded
        """
        batch = self._prepare(content, merchant_id, filename)
        report = self._persist(batch)
        self._record_history(batch, report)
        return report

    def preview(
        self,
        content: bytes,
        merchant_id: str,
        filename: Optional[str] = None,
    ) -> ImportPreview:
        """
        Dry-run an import and cache it for confirmation.

        Nothing is written to the catalog.

        Returns:
            ImportPreview with a preview_id for commit_preview
        """
        batch = self._prepare(content, merchant_id, filename)

        warnings = []
        duplicate = self._check_duplicate(merchant_id, batch.file_hash)
        if duplicate:
            warnings.append(
                f"This file was already imported as '{duplicate.get('filename')}' "
                f"on {duplicate.get('uploaded_at')}. Re-importing updates the same products."
            )

        rows = self._preview_rows(batch)
        ttl = settings.import_preview_ttl_minutes
        preview_id = preview_cache_service.store_preview(merchant_id, batch, ttl_minutes=ttl)

        preview = ImportPreview(
            preview_id=preview_id,
            expires_in_minutes=ttl,
            total_rows=batch.total_rows,
            planned_creates=sum(1 for r in rows if r.action == PlannedAction.CREATE),
            planned_updates=sum(1 for r in rows if r.action == PlannedAction.UPDATE),
            skipped=sum(1 for r in rows if r.action == PlannedAction.SKIP),
            invalid=sum(1 for r in rows if r.action == PlannedAction.INVALID),
            warnings=warnings,
            rows=rows,
        )

        logger.info(
            "import_preview_created",
            preview_id=preview_id,
            merchant_id=merchant_id,
            total_rows=preview.total_rows,
            planned_creates=preview.planned_creates,
            planned_updates=preview.planned_updates,
            skipped=preview.skipped,
            invalid=preview.invalid,
        )
        return preview

    def commit_preview(self, preview_id: str, merchant_id: str) -> ImportReport:
        """
        Persist a cached preview.

        The preview is removed before writing, so confirming twice
        cannot import twice.

        Raises:
            ImportSessionNotFoundError: Unknown or expired preview_id
            ImportSessionForbiddenError: Preview belongs to another merchant
        """
        entry = preview_cache_service.retrieve_preview(preview_id)
        if entry is None:
            raise ImportSessionNotFoundError(preview_id)
        if entry.merchant_id != merchant_id:
            logger.warning(
                "import_preview_wrong_merchant",
                preview_id=preview_id,
                merchant_id=merchant_id,
            )
            raise ImportSessionForbiddenError(preview_id)

        preview_cache_service.delete_preview(preview_id)
        logger.info("import_preview_confirmed", preview_id=preview_id, merchant_id=merchant_id)

        batch: PreparedBatch = entry.data
        report = self._persist(batch)
        self._record_history(batch, report)
        return report

    # ===================
    # PIPELINE STAGES
    # ===================

    def _prepare(self, content: bytes, merchant_id: str, filename: Optional[str]) -> PreparedBatch:
        """Parse, validate and reconcile. No writes."""
        batch = PreparedBatch(
            merchant_id=merchant_id,
            filename=filename,
            file_hash=hashlib.sha256(content).hexdigest(),
        )

        self._enter_stage(ImportStage.PARSING, merchant_id, filename=filename)
        try:
            raw_rows = parse_import_file(
                content,
                self.schema,
                filename=filename,
                max_rows=settings.import_max_rows,
                max_bytes=settings.import_max_file_bytes,
            )
        except ImportParseError as e:
            logger.warning(
                "import_file_rejected",
                merchant_id=merchant_id,
                filename=filename,
                reason=e.reason,
            )
            self._record_failure(batch, e.message)
            raise

        if not raw_rows:
            return batch

        self._enter_stage(ImportStage.VALIDATING, merchant_id, rows=len(raw_rows))
        batch.categories = self.categories.get_code_index()
        results = validate_rows(
            raw_rows,
            self.schema,
            batch.categories.keys(),
            settings.import_default_currency,
        )
        batch.invalid = [r for r in results if not r.is_valid]
        candidates = [r.candidate for r in results if r.is_valid]

        self._enter_stage(ImportStage.RECONCILING, merchant_id, candidates=len(candidates))
        sku_index = self.products.get_sku_index([c.sku for c in candidates if c.sku])
        batch.reconciled = reconcile(candidates, sku_index, merchant_id)

        return batch

    def _persist(self, batch: PreparedBatch) -> ImportReport:
        """Write creates/updates row by row and build the report."""
        self._enter_stage(ImportStage.PERSISTING, batch.merchant_id, rows=batch.total_rows)

        outcomes = [_invalid_outcome(result) for result in batch.invalid]
        for item in batch.reconciled:
            if item.is_writable:
                outcomes.append(self._write(item, batch))
            else:
                outcomes.append(_skipped_outcome(item))

        report = ImportReport.from_outcomes(outcomes)

        self._enter_stage(
            ImportStage.DONE,
            batch.merchant_id,
            status=report.status.value,
            total_rows=report.total_rows,
            created=report.created,
            updated=report.updated,
            skipped=report.skipped,
            failed=report.failed,
        )
        return report

    def _write(self, item: ReconciledCandidate, batch: PreparedBatch) -> ImportOutcome:
        """Persist one row. Store errors become a FAILED outcome."""
        candidate = item.candidate
        try:
            category = batch.categories[candidate.category_code]
            fields = ProductUpdate(
                name=candidate.name,
                description=candidate.description,
                category_id=category.id,
                price=candidate.price,
                currency=candidate.currency,
                stock=candidate.stock,
                images=list(candidate.image_urls),
                attributes=dict(candidate.attributes),
                variants=[
                    ProductVariant(
                        sku=v.sku,
                        attributes=dict(v.attributes),
                        price=v.price,
                        stock=v.stock,
                        images=list(v.images),
                        active=v.active,
                    )
                    for v in candidate.variants
                ],
                active=candidate.active,
            )

            if item.decision == ReconcileDecision.UPDATE:
                product = self.products.update(item.existing_product_id, fields)
                status = ImportOutcomeStatus.UPDATED
            else:
                product = self.products.create(ProductCreate(
                    id=str(uuid.uuid4()),
                    merchant_id=batch.merchant_id,
                    sku=candidate.sku,
                    **fields.model_dump(),
                ))
                status = ImportOutcomeStatus.CREATED

        except AppError as e:
            logger.error(
                "import_row_write_failed",
                row_index=candidate.row_index,
                sku=candidate.sku,
                error_code=e.code,
                error=e.message,
            )
            return _persistence_failure(item, e.message)
        except Exception as e:
            logger.error(
                "import_row_write_failed",
                row_index=candidate.row_index,
                sku=candidate.sku,
                error=str(e),
                error_type=type(e).__name__,
            )
            return _persistence_failure(item, str(e))

        return ImportOutcome(
            row_index=candidate.row_index,
            status=status,
            sku=candidate.sku,
            name=candidate.name,
            product_id=product.id,
        )

    # ===================
    # HISTORY (BEST-EFFORT)
    # ===================

    def _check_duplicate(self, merchant_id: str, file_hash: str) -> Optional[dict]:
        try:
            return get_upload_history_service().check_duplicate(merchant_id, file_hash)
        except Exception as e:
            logger.warning("import_history_unavailable", error=str(e))
            return None

    def _record_history(self, batch: PreparedBatch, report: ImportReport) -> None:
        try:
            get_upload_history_service().record_upload(
                merchant_id=batch.merchant_id,
                file_hash=batch.file_hash,
                filename=batch.filename,
                report=report,
            )
        except Exception as e:
            logger.warning("import_history_unavailable", error=str(e))

    def _record_failure(self, batch: PreparedBatch, message: str) -> None:
        try:
            get_upload_history_service().record_failed_upload(
                merchant_id=batch.merchant_id,
                filename=batch.filename,
                error_message=message,
                file_hash=batch.file_hash,
            )
        except Exception as e:
            logger.warning("import_history_unavailable", error=str(e))

    # ===================
    # HELPER METHODS
    # ===================

    def _enter_stage(self, stage: ImportStage, merchant_id: str, **context) -> None:
        logger.info("import_stage", stage=stage.value, merchant_id=merchant_id, **context)

    def _preview_rows(self, batch: PreparedBatch) -> list[ImportPreviewRow]:
        rows = [
            ImportPreviewRow(
                row_index=result.row_index,
                action=PlannedAction.INVALID,
                sku=result.sku,
                name=result.name,
                reason=result.errors[0].code,
                errors=_error_responses(result.errors),
                warnings=result.warnings,
            )
            for result in batch.invalid
        ]

        for item in batch.reconciled:
            candidate = item.candidate
            row = ImportPreviewRow(
                row_index=candidate.row_index,
                action=PlannedAction.SKIP,
                sku=candidate.sku,
                name=candidate.name,
                category_code=candidate.category_code,
                price=candidate.price,
                stock=candidate.stock,
                variant_count=len(candidate.variants),
                warnings=list(candidate.warnings),
            )
            if item.decision == ReconcileDecision.CREATE:
                row.action = PlannedAction.CREATE
            elif item.decision == ReconcileDecision.UPDATE:
                row.action = PlannedAction.UPDATE
                row.product_id = item.existing_product_id
            else:
                skipped = _skipped_outcome(item)
                row.reason = skipped.reason
                row.errors = skipped.errors
            rows.append(row)

        return sorted(rows, key=lambda r: r.row_index)


# ===================
# OUTCOME BUILDERS
# ===================

def _error_responses(errors: list[RowError]) -> list[RowErrorResponse]:
    return [
        RowErrorResponse(row_index=e.row_index, field=e.field, code=e.code, message=e.message)
        for e in errors
    ]


def _invalid_outcome(result: ValidationResult) -> ImportOutcome:
    return ImportOutcome(
        row_index=result.row_index,
        status=ImportOutcomeStatus.FAILED,
        sku=result.sku,
        name=result.name,
        reason=result.errors[0].code,
        errors=_error_responses(result.errors),
    )


def _skipped_outcome(item: ReconciledCandidate) -> ImportOutcome:
    candidate = item.candidate
    if item.decision == ReconcileDecision.DUPLICATE_IN_BATCH:
        code = RowErrorCode.DUPLICATE_IN_BATCH
        message = f"SKU {candidate.sku} already appears on row {item.first_row_index}"
    else:
        code = RowErrorCode.SKU_CONFLICT
        message = f"SKU {candidate.sku} is already used by another store"

    return ImportOutcome(
        row_index=candidate.row_index,
        status=ImportOutcomeStatus.SKIPPED,
        sku=candidate.sku,
        name=candidate.name,
        reason=code,
        errors=[RowErrorResponse(
            row_index=candidate.row_index,
            field="sku",
            code=code,
            message=message,
        )],
    )


def _persistence_failure(item: ReconciledCandidate, message: str) -> ImportOutcome:
    candidate = item.candidate
    return ImportOutcome(
        row_index=candidate.row_index,
        status=ImportOutcomeStatus.FAILED,
        sku=candidate.sku,
        name=candidate.name,
        product_id=item.existing_product_id,
        reason=RowErrorCode.PERSISTENCE_FAILED,
        errors=[RowErrorResponse(
            row_index=candidate.row_index,
            field="row",
            code=RowErrorCode.PERSISTENCE_FAILED,
            message=f"Could not save product: {message}",
        )],
    )


# Singleton instance
_service: Optional[ImportService] = None


def get_import_service() -> ImportService:
    """Get or create ImportService instance."""
    global _service
    if _service is None:
        _service = ImportService()
    return _service
