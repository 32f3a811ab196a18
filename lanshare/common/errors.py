"""Error taxonomy for the share store.

Every error carries a machine-readable ``code`` and the HTTP status the
boundary maps it to. Storage layers raise these; routers let them propagate
to the handlers installed by ``lanshare.common.error_envelope``.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ShareError(Exception):
    code = "share.error"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ShareNotFound(ShareError):
    """Unknown id, or an id whose blob is gone."""

    code = "share.not_found"
    http_status = 404


class CorruptRecord(ShareNotFound):
    """Stored metadata did not parse; surfaced to clients as not found."""

    code = "share.corrupt_record"


class ShareExpired(ShareError):
    code = "share.expired"
    http_status = 410


class StorageWriteError(ShareError):
    """Disk-full or permission failure while persisting bytes or metadata."""

    code = "share.storage_write_failed"
    http_status = 500


class ShareValidationError(ShareError):
    code = "share.invalid_request"
    http_status = 400


class UploadTooLarge(ShareValidationError):
    code = "share.upload_too_large"
    http_status = 413
