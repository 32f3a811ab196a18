"""Share service: upload path and Retrieval Gateway.

Upload writes the blob first and the metadata second; the metadata record is
what makes an artifact visible. Retrieval reads metadata, enforces expiry and
only then opens the blob. A blob that vanished between those two steps (the
reaper won the race) is reported as not found.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import BinaryIO, Callable, Iterator, Optional
from urllib.parse import quote

from pydantic import ValidationError

from lanshare.artifact_store.store import ArtifactStore
from lanshare.common.errors import CorruptRecord, ShareExpired, ShareNotFound, ShareValidationError
from lanshare.common.ids import new_share_id
from lanshare.ledger.repository import MetadataLedger
from lanshare.logging.event_log import EventLogEntry, EventLogger, default_event_logger
from lanshare.shares.models import (
    DEFAULT_MIME_TYPE,
    ArtifactMetadata,
    ShareDownload,
    ShareReceipt,
    _now,
)

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024
_UNSAFE_FILENAME_CHARS = re.compile(r'[\r\n"]')

Clock = Callable[[], datetime]


def sanitize_filename(name: Optional[str]) -> str:
    """Strip characters that would break out of a quoted header value."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name or "")
    return cleaned or "download"


def content_disposition(filename: str) -> str:
    safe = sanitize_filename(filename)
    if safe.isascii():
        return f'attachment; filename="{safe}"'
    fallback = safe.encode("ascii", "replace").decode("ascii").replace("?", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(safe, safe='')}"


def share_url(base_url: str, share_id: str) -> str:
    return f"{base_url.rstrip('/')}/share/{share_id}"


def iter_stream(stream: BinaryIO, chunk_size: int = DOWNLOAD_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield chunks and always close the handle, including on client abort."""
    try:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        stream.close()


class ShareService:
    def __init__(
        self,
        store: ArtifactStore,
        ledger: MetadataLedger,
        retention: timedelta = timedelta(hours=24),
        clock: Clock = _now,
        event_logger: EventLogger = default_event_logger,
        max_upload_bytes: Optional[int] = None,
    ) -> None:
        if retention <= timedelta(0):
            raise ValueError("retention must be positive")
        self.store = store
        self.ledger = ledger
        self.retention = retention
        self.clock = clock
        self.event_logger = event_logger
        self.max_upload_bytes = max_upload_bytes

    def store_artifact(
        self,
        filename: Optional[str],
        mime_type: Optional[str],
        stream: Optional[BinaryIO],
        parent_collection_id: Optional[str] = None,
    ) -> ArtifactMetadata:
        """Persist blob then metadata and return the metadata record."""
        if stream is None:
            raise ShareValidationError("No file uploaded")

        share_id = new_share_id()
        size = self.store.put(share_id, stream, max_bytes=self.max_upload_bytes)
        uploaded_at = self.clock()
        metadata = ArtifactMetadata(
            id=share_id,
            original_name=filename or "download",
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            size_bytes=size,
            uploaded_at=uploaded_at,
            expires_at=uploaded_at + self.retention,
            parent_collection_id=parent_collection_id,
        )
        # A failure here leaves an orphan blob; the reaper's orphan sweep collects it.
        self.ledger.write(share_id, metadata.to_record())
        logger.info(f"Stored artifact {share_id} ({size} bytes)")
        self._emit("share_uploaded", metadata)
        return metadata

    def upload(
        self,
        filename: Optional[str],
        mime_type: Optional[str],
        stream: Optional[BinaryIO],
        base_url: str,
    ) -> ShareReceipt:
        metadata = self.store_artifact(filename, mime_type, stream)
        return ShareReceipt(
            id=metadata.id,
            share_url=share_url(base_url, metadata.id),
            expires_at=metadata.expires_at,
        )

    def describe(self, share_id: str) -> ArtifactMetadata:
        """Load metadata without touching the blob."""
        try:
            record = self.ledger.read(share_id)
        except CorruptRecord as exc:
            logger.error(f"Corrupt metadata for {share_id}: {exc}")
            raise
        try:
            return ArtifactMetadata.model_validate(record)
        except ValidationError as exc:
            logger.error(f"Metadata for {share_id} failed validation: {exc}")
            raise CorruptRecord(f"Metadata for {share_id} is malformed") from exc

    def resolve(self, share_id: str) -> ShareDownload:
        metadata = self.describe(share_id)
        if metadata.is_expired(self.clock()):
            raise ShareExpired("Link expired", details={"id": share_id, "expiresAt": metadata.expires_at.isoformat()})

        try:
            stream = self.store.get(share_id)
        except ShareNotFound:
            logger.warning(f"Metadata for {share_id} present but blob missing")
            raise ShareNotFound(f"File not found: {share_id}")

        self._emit("share_downloaded", metadata)
        return ShareDownload(
            metadata=metadata,
            stream=stream,
            filename=sanitize_filename(metadata.original_name),
            content_type=metadata.mime_type or DEFAULT_MIME_TYPE,
        )

    def delete(self, share_id: str) -> None:
        """Remove both halves; each is attempted even if the other is missing."""
        blob_removed = True
        try:
            self.store.delete(share_id)
        except ShareNotFound:
            blob_removed = False
        meta_removed = self.ledger.delete(share_id)
        if not (blob_removed or meta_removed):
            raise ShareNotFound(f"Not found: {share_id}")
        logger.info(f"Deleted artifact {share_id}")
        self.event_logger(EventLogEntry(event_type="share_deleted", asset_type="artifact", asset_id=share_id))

    def _emit(self, event_type: str, metadata: ArtifactMetadata) -> None:
        self.event_logger(
            EventLogEntry(
                event_type=event_type,
                asset_type="artifact",
                asset_id=metadata.id,
                parent_id=metadata.parent_collection_id,
                metadata={
                    "original_name": metadata.original_name,
                    "mime_type": metadata.mime_type,
                    "size_bytes": metadata.size_bytes,
                },
            )
        )
