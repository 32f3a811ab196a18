"""Metadata ledger interface and filesystem implementation.

Location: {data_dir}/meta/{namespace}/{record_id}.json

One JSON document per record. Writes go through a temp file, fsync and
``os.replace`` so a concurrent reader sees either the old or the new record,
never a torn one, and the record is on stable storage before ``write`` returns.
"""
from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Protocol

from lanshare.common.errors import CorruptRecord, ShareNotFound, StorageWriteError
from lanshare.common.ids import is_valid_share_id

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class MetadataLedger(Protocol):
    """Abstract key -> JSON record store for one namespace."""

    namespace: str

    def write(self, record_id: str, payload: Dict[str, Any]) -> None:
        """Persist (or overwrite) a record durably."""
        ...

    def read(self, record_id: str) -> Dict[str, Any]:
        """Return the record; raise ShareNotFound or CorruptRecord."""
        ...

    def list(self) -> List[Dict[str, Any]]:
        """All readable records, in no particular order."""
        ...

    def delete(self, record_id: str) -> bool:
        """Remove the record; return False when it was already gone."""
        ...


class FileSystemMetadataLedger:
    def __init__(self, base_dir: str | Path, namespace: str) -> None:
        self.namespace = namespace
        self._dir = Path(base_dir) / namespace
        self._dir.mkdir(parents=True, exist_ok=True)

    def _record_path(self, record_id: str) -> Path:
        if not is_valid_share_id(record_id):
            raise ShareNotFound(f"Invalid {self.namespace} id: {record_id!r}")
        return self._dir / f"{record_id}{_SUFFIX}"

    def write(self, record_id: str, payload: Dict[str, Any]) -> None:
        path = self._record_path(record_id)
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=str(self._dir), prefix=".tmp-", suffix=_SUFFIX, delete=False
            ) as handle:
                tmp_name = handle.name
                json.dump(payload, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
            self._fsync_dir()
        except OSError as exc:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
            logger.error(f"Failed to write {self.namespace} record {record_id}: {exc}")
            raise StorageWriteError(f"Ledger write failed: {exc}") from exc

    def _fsync_dir(self) -> None:
        try:
            fd = os.open(str(self._dir), os.O_RDONLY)
        except OSError:
            return
        try:
            os.fsync(fd)
        except OSError:
            # Some platforms refuse fsync on directories.
            pass
        finally:
            os.close(fd)

    def read(self, record_id: str) -> Dict[str, Any]:
        path = self._record_path(record_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ShareNotFound(f"{self.namespace} record not found: {record_id}") from exc
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise CorruptRecord(f"{self.namespace} record {record_id} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise CorruptRecord(f"{self.namespace} record {record_id} is not a JSON object")
        return payload

    def list(self) -> List[Dict[str, Any]]:
        records = []
        for entry in self._dir.glob(f"*{_SUFFIX}"):
            if entry.name.startswith("."):
                continue
            record_id = entry.name[: -len(_SUFFIX)]
            try:
                records.append(self.read(record_id))
            except CorruptRecord as exc:
                logger.warning(f"Skipping corrupt record {entry}: {exc}")
            except ShareNotFound:
                # Deleted between listing and reading.
                continue
        return records

    def delete(self, record_id: str) -> bool:
        path = self._record_path(record_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True


class InMemoryMetadataLedger:
    """In-memory ledger for tests; stores deep copies so callers cannot alias records."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def write(self, record_id: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self._records[record_id] = copy.deepcopy(payload)

    def read(self, record_id: str) -> Dict[str, Any]:
        with self._lock:
            record = self._records.get(record_id)
        if record is None:
            raise ShareNotFound(f"{self.namespace} record not found: {record_id}")
        return copy.deepcopy(record)

    def list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values()]

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._records.pop(record_id, None) is not None
