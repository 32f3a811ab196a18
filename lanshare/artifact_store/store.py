"""Blob storage for uploaded artifacts.

Location: {data_dir}/blobs/{share_id}

Blobs are write-once: ``put`` streams into a temp file beside the target and
hard-links it into place, so a reader never observes a partial blob and an
existing id is never overwritten.
"""
from __future__ import annotations

import io
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Protocol, Tuple

from lanshare.common.errors import ShareNotFound, StorageWriteError, UploadTooLarge
from lanshare.common.ids import is_valid_share_id

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
_TMP_PREFIX = ".upload-"


def _check_id(share_id: str) -> None:
    if not is_valid_share_id(share_id):
        raise ShareNotFound(f"Invalid artifact id: {share_id!r}")


class ArtifactStore(Protocol):
    """Abstraction for artifact bytes (PUT/GET/DELETE blobs)."""

    def put(self, share_id: str, stream: BinaryIO, max_bytes: Optional[int] = None) -> int:
        """Store the stream under ``share_id`` and return the byte count."""
        ...

    def get(self, share_id: str) -> BinaryIO:
        """Open the blob for reading at offset 0; raise ShareNotFound if absent."""
        ...

    def delete(self, share_id: str) -> None:
        """Remove the blob; raise ShareNotFound if it was already gone."""
        ...

    def exists(self, share_id: str) -> bool:
        ...

    def list_ids(self) -> List[str]:
        ...

    def modified_at(self, share_id: str) -> datetime:
        ...


class FileSystemArtifactStore:
    """Filesystem-backed artifact store, one flat file per share id."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _blob_path(self, share_id: str) -> Path:
        _check_id(share_id)
        return self._base_dir / share_id

    def put(self, share_id: str, stream: BinaryIO, max_bytes: Optional[int] = None) -> int:
        dest = self._blob_path(share_id)
        if dest.exists():
            raise StorageWriteError(f"Artifact {share_id} already exists")

        try:
            fd, tmp_name = tempfile.mkstemp(prefix=_TMP_PREFIX, dir=self._base_dir)
        except OSError as exc:
            logger.error(f"Failed to open temp blob for {share_id}: {exc}")
            raise StorageWriteError(f"Artifact store PUT failed: {exc}") from exc

        tmp = Path(tmp_name)
        size = 0
        try:
            with os.fdopen(fd, "wb") as handle:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if max_bytes is not None and size > max_bytes:
                        raise UploadTooLarge(
                            f"Upload exceeds {max_bytes} bytes",
                            details={"max_bytes": max_bytes},
                        )
                    handle.write(chunk)
                handle.flush()
                os.fsync(handle.fileno())
            os.link(tmp, dest)
        except FileExistsError as exc:
            raise StorageWriteError(f"Artifact {share_id} already exists") from exc
        except OSError as exc:
            logger.error(f"Failed to store blob {share_id}: {exc}")
            raise StorageWriteError(f"Artifact store PUT failed: {exc}") from exc
        finally:
            tmp.unlink(missing_ok=True)
        return size

    def get(self, share_id: str) -> BinaryIO:
        path = self._blob_path(share_id)
        try:
            return open(path, "rb")
        except FileNotFoundError as exc:
            raise ShareNotFound(f"Artifact not found: {share_id}") from exc

    def delete(self, share_id: str) -> None:
        path = self._blob_path(share_id)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise ShareNotFound(f"Artifact not found: {share_id}") from exc

    def exists(self, share_id: str) -> bool:
        return is_valid_share_id(share_id) and (self._base_dir / share_id).is_file()

    def list_ids(self) -> List[str]:
        return sorted(
            entry.name
            for entry in self._base_dir.iterdir()
            if entry.is_file() and not entry.name.startswith(_TMP_PREFIX)
        )

    def modified_at(self, share_id: str) -> datetime:
        path = self._blob_path(share_id)
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError as exc:
            raise ShareNotFound(f"Artifact not found: {share_id}") from exc
        return datetime.fromtimestamp(mtime, tz=timezone.utc)


class InMemoryArtifactStore:
    """In-memory artifact store for tests."""

    def __init__(self) -> None:
        self._blobs: Dict[str, Tuple[bytes, datetime]] = {}
        self._lock = threading.Lock()

    def put(self, share_id: str, stream: BinaryIO, max_bytes: Optional[int] = None) -> int:
        _check_id(share_id)
        data = stream.read()
        if max_bytes is not None and len(data) > max_bytes:
            raise UploadTooLarge(f"Upload exceeds {max_bytes} bytes", details={"max_bytes": max_bytes})
        with self._lock:
            if share_id in self._blobs:
                raise StorageWriteError(f"Artifact {share_id} already exists")
            self._blobs[share_id] = (data, datetime.now(timezone.utc))
        return len(data)

    def get(self, share_id: str) -> BinaryIO:
        with self._lock:
            entry = self._blobs.get(share_id)
        if entry is None:
            raise ShareNotFound(f"Artifact not found: {share_id}")
        return io.BytesIO(entry[0])

    def delete(self, share_id: str) -> None:
        with self._lock:
            if self._blobs.pop(share_id, None) is None:
                raise ShareNotFound(f"Artifact not found: {share_id}")

    def exists(self, share_id: str) -> bool:
        with self._lock:
            return share_id in self._blobs

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._blobs)

    def modified_at(self, share_id: str) -> datetime:
        with self._lock:
            entry = self._blobs.get(share_id)
        if entry is None:
            raise ShareNotFound(f"Artifact not found: {share_id}")
        return entry[1]

    def backdate(self, share_id: str, when: datetime) -> None:
        with self._lock:
            data, _ = self._blobs[share_id]
            self._blobs[share_id] = (data, when)
