"""
Temporary storage for import previews.
Stores dry-run results in memory with TTL expiration.
Single-process only; a restart drops pending previews.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from config.settings import settings


@dataclass
class PreviewEntry:
    merchant_id: str
    expires_at: datetime
    data: Any


_cache: dict[str, PreviewEntry] = {}


def store_preview(merchant_id: str, data: Any, ttl_minutes: Optional[int] = None) -> str:
    """Store preview data for a merchant, return preview_id."""
    ttl = ttl_minutes if ttl_minutes is not None else settings.import_preview_ttl_minutes
    preview_id = str(uuid.uuid4())
    _cache[preview_id] = PreviewEntry(
        merchant_id=merchant_id,
        expires_at=datetime.now() + timedelta(minutes=ttl),
        data=data,
    )
    _cleanup_expired()
    return preview_id


def retrieve_preview(preview_id: str) -> Optional[PreviewEntry]:
    """Retrieve a preview entry. Returns None if expired/not found."""
    entry = _cache.get(preview_id)
    if entry is None:
        return None
    if datetime.now() > entry.expires_at:
        del _cache[preview_id]
        return None
    return entry


def delete_preview(preview_id: str) -> None:
    """Remove preview after confirm."""
    _cache.pop(preview_id, None)


def clear_previews() -> None:
    """Drop every cached preview."""
    _cache.clear()


def _cleanup_expired() -> None:
    """Remove all expired entries."""
    now = datetime.now()
    expired = [k for k, entry in _cache.items() if now > entry.expires_at]
    for k in expired:
        del _cache[k]
