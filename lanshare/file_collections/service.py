"""Collection Aggregator service.

Appends are a read-modify-write on one ledger record, so every mutation of a
collection runs under that collection's entry in a ``KeyedLock``. Appending to
an id that has no record yet creates the collection on the spot: slow clients
may upload before their explicit create call lands, and that upload is kept.
A collection that exists but has expired is not revived: appends to it are
rejected as expired, matching what ``get`` reports, and the reaper removes it.
"""
from __future__ import annotations

import logging
from typing import BinaryIO, Optional, Tuple

from pydantic import ValidationError

from lanshare.common.errors import CorruptRecord, ShareExpired, ShareNotFound, ShareValidationError
from lanshare.common.ids import is_valid_share_id, new_share_id
from lanshare.common.locks import KeyedLock
from lanshare.file_collections.models import Collection
from lanshare.ledger.repository import MetadataLedger
from lanshare.logging.event_log import EventLogEntry
from lanshare.shares.models import ArtifactMetadata, ShareDownload
from lanshare.shares.service import ShareService

logger = logging.getLogger(__name__)


class CollectionService:
    def __init__(
        self,
        ledger: MetadataLedger,
        shares: ShareService,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self.ledger = ledger
        self.shares = shares
        self.locks = locks or KeyedLock()

    def _new_collection(self, collection_id: str) -> Collection:
        now = self.shares.clock()
        return Collection(
            id=collection_id,
            files=[],
            created_at=now,
            updated_at=now,
            expires_at=now + self.shares.retention,
        )

    def _load(self, collection_id: str) -> Collection:
        try:
            record = self.ledger.read(collection_id)
        except CorruptRecord as exc:
            logger.error(f"Corrupt collection record {collection_id}: {exc}")
            raise
        except ShareNotFound:
            raise ShareNotFound("File collection not found", details={"id": collection_id})
        try:
            return Collection.model_validate(record)
        except ValidationError as exc:
            logger.error(f"Collection {collection_id} failed validation: {exc}")
            raise CorruptRecord(f"Collection {collection_id} is malformed") from exc

    def create(self) -> Collection:
        collection = self._new_collection(new_share_id())
        self.ledger.write(collection.id, collection.to_record())
        logger.info(f"Created collection {collection.id}")
        return collection

    def get(self, collection_id: str) -> Collection:
        collection = self._load(collection_id)
        if collection.is_expired(self.shares.clock()):
            raise ShareExpired("Link expired", details={"id": collection_id})
        return collection

    def append_file(self, collection_id: str, metadata: ArtifactMetadata) -> Collection:
        if not is_valid_share_id(collection_id):
            raise ShareValidationError("Invalid collection id", details={"id": collection_id})

        with self.locks.hold(collection_id):
            try:
                collection = self._load(collection_id)
            except CorruptRecord:
                raise
            except ShareNotFound:
                logger.info(f"Collection {collection_id} not found; creating it for incoming upload")
                collection = self._new_collection(collection_id)
            else:
                if collection.is_expired(self.shares.clock()):
                    raise ShareExpired("Link expired", details={"id": collection_id})

            if collection.find(metadata.id) is None:
                collection.files.append(metadata)
            now = self.shares.clock()
            collection.updated_at = now
            collection.expires_at = now + self.shares.retention
            self.ledger.write(collection_id, collection.to_record())

        self.shares.event_logger(
            EventLogEntry(
                event_type="collection_file_appended",
                asset_type="collection",
                asset_id=collection_id,
                metadata={"file_id": metadata.id, "file_count": len(collection.files)},
            )
        )
        return collection

    def upload(
        self,
        collection_id: str,
        filename: Optional[str],
        mime_type: Optional[str],
        stream: Optional[BinaryIO],
    ) -> Tuple[ArtifactMetadata, Collection]:
        """Store one member artifact and record it in the collection."""
        if not is_valid_share_id(collection_id):
            raise ShareValidationError("Invalid collection id", details={"id": collection_id})
        # Fail before storing the blob; a missing collection is auto-created by the append.
        try:
            self.get(collection_id)
        except ShareNotFound:
            pass
        metadata = self.shares.store_artifact(filename, mime_type, stream, parent_collection_id=collection_id)
        collection = self.append_file(collection_id, metadata)
        return metadata, collection

    def resolve_member(self, collection_id: str, file_id: str) -> ShareDownload:
        collection = self.get(collection_id)
        if collection.find(file_id) is None:
            raise ShareNotFound("File not found in collection", details={"id": file_id})
        return self.shares.resolve(file_id)

    def delete(self, collection_id: str) -> None:
        with self.locks.hold(collection_id):
            if not self.ledger.delete(collection_id):
                raise ShareNotFound("File collection not found", details={"id": collection_id})
        logger.info(f"Deleted collection {collection_id}")
