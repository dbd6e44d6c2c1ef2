"""
Tracks import batches per merchant.

File hashes let a preview warn when the same spreadsheet was already
imported. Recording is best-effort: a history failure never fails an import.
"""
import structlog
from typing import Optional

from config import get_supabase_client
from models.catalog_import import ImportReport

logger = structlog.get_logger(__name__)


class UploadHistoryService:
    def __init__(self):
        self.db = get_supabase_client()
        self.table = "import_batches"

    def check_duplicate(self, merchant_id: str, file_hash: str) -> Optional[dict]:
        """Check if this merchant already imported this file. Returns {filename, uploaded_at, row_count} or None."""
        try:
            result = (
                self.db.table(self.table)
                .select("filename, uploaded_at, row_count")
                .eq("merchant_id", merchant_id)
                .eq("file_hash", file_hash)
                .eq("status", "success")
                .order("uploaded_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.warning("import_history_lookup_failed", merchant_id=merchant_id, error=str(e))
            return None
        return result.data[0] if result.data else None

    def record_upload(
        self,
        merchant_id: str,
        file_hash: str,
        filename: str,
        report: ImportReport,
    ) -> None:
        """Record a finished batch with its counts."""
        try:
            self.db.table(self.table).insert({
                "merchant_id": merchant_id,
                "file_hash": file_hash,
                "filename": filename or "unknown",
                "row_count": report.total_rows,
                "created_count": report.created,
                "updated_count": report.updated,
                "skipped_count": report.skipped,
                "failed_count": report.failed,
                "batch_status": report.status.value,
                "status": "success",
            }).execute()
            logger.info(
                "import_batch_recorded",
                merchant_id=merchant_id,
                filename=filename,
                row_count=report.total_rows,
            )
        except Exception as e:
            logger.warning(
                "failed_to_record_import_batch",
                merchant_id=merchant_id,
                error=str(e),
            )

    def record_failed_upload(
        self,
        merchant_id: str,
        filename: str,
        error_message: str,
        file_hash: str = "",
    ) -> None:
        """Record a rejected file for later diagnosis."""
        truncated_msg = error_message[:2000] if error_message else "Unknown error"
        try:
            self.db.table(self.table).insert({
                "merchant_id": merchant_id,
                "file_hash": file_hash or "",
                "filename": filename or "unknown",
                "row_count": 0,
                "status": "error",
                "error_message": truncated_msg,
            }).execute()
            logger.info(
                "failed_import_recorded",
                merchant_id=merchant_id,
                filename=filename,
                error=truncated_msg[:200],
            )
        except Exception as log_err:
            # Never let failure logging break the error response
            logger.warning(
                "failed_to_record_import_error",
                merchant_id=merchant_id,
                log_error=str(log_err),
            )


_service: Optional[UploadHistoryService] = None


def get_upload_history_service() -> UploadHistoryService:
    global _service
    if _service is None:
        _service = UploadHistoryService()
    return _service
