"""Expiry Reaper.

State machine: IDLE -> SCANNING -> EVALUATING (per record) -> SWEEPING | IDLE.

Best-effort and partial-failure tolerant: the blob and the metadata record of
an expired artifact are deleted independently, every failure is logged, and
the sweep always moves on to the next record. A retrieval racing a sweep may
observe NotFound for an id it just resolved; that outcome is accepted.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from pydantic import BaseModel, TypeAdapter, ValidationError

from lanshare.artifact_store.store import ArtifactStore
from lanshare.common.errors import CorruptRecord, ShareNotFound
from lanshare.common.locks import KeyedLock
from lanshare.ledger.repository import MetadataLedger
from lanshare.logging.event_log import EventLogEntry, EventLogger, default_event_logger
from lanshare.shares.models import _now, as_utc

logger = logging.getLogger(__name__)

_DATETIME = TypeAdapter(datetime)


class ReaperState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    EVALUATING = "evaluating"
    SWEEPING = "sweeping"


class SweepReport(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    scanned: int = 0
    reaped: int = 0
    collections_reaped: int = 0
    orphans_reaped: int = 0
    skipped: int = 0
    failures: int = 0


def _parse_expiry(record: Dict[str, Any]) -> Optional[datetime]:
    raw = record.get("expiresAt")
    if raw is None:
        return None
    try:
        return as_utc(_DATETIME.validate_python(raw))
    except ValidationError:
        return None


class ExpiryReaper:
    def __init__(
        self,
        store: ArtifactStore,
        artifacts: MetadataLedger,
        collections: Optional[MetadataLedger] = None,
        clock: Callable[[], datetime] = _now,
        interval_seconds: float = 60 * 60,
        orphan_grace: Optional[timedelta] = None,
        collection_locks: Optional[KeyedLock] = None,
        event_logger: EventLogger = default_event_logger,
    ) -> None:
        self.store = store
        self.artifacts = artifacts
        self.collections = collections
        self.clock = clock
        self.interval_seconds = interval_seconds
        self.orphan_grace = orphan_grace
        self.collection_locks = collection_locks or KeyedLock()
        self.event_logger = event_logger
        self.last_report: Optional[SweepReport] = None
        self._state = ReaperState.IDLE
        self._sweep_lock = threading.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ReaperState:
        return self._state

    def sweep(self) -> SweepReport:
        """Run one full pass; never raises."""
        with self._sweep_lock:
            report = SweepReport(started_at=self.clock())
            try:
                self._sweep(report)
            except Exception as exc:
                report.failures += 1
                logger.error(f"Reaper sweep aborted: {exc}")
            finally:
                self._state = ReaperState.IDLE
                report.finished_at = self.clock()
                self.last_report = report
            logger.info(
                f"Reaper sweep done: scanned={report.scanned} reaped={report.reaped} "
                f"collections={report.collections_reaped} orphans={report.orphans_reaped} "
                f"skipped={report.skipped} failures={report.failures}"
            )
            return report

    def _sweep(self, report: SweepReport) -> None:
        self._state = ReaperState.SCANNING
        now = self.clock()
        records = self.artifacts.list()
        known_ids: Set[str] = set()

        for record in records:
            report.scanned += 1
            self._state = ReaperState.EVALUATING
            share_id = record.get("id")
            expires_at = _parse_expiry(record)
            if isinstance(share_id, str):
                known_ids.add(share_id)
            if not isinstance(share_id, str) or expires_at is None:
                logger.warning(f"Skipping unreadable artifact record: {record!r:.200}")
                report.skipped += 1
                continue
            if now > expires_at:
                self._state = ReaperState.SWEEPING
                self._reap_artifact(share_id, report)

        if self.collections is not None:
            self._sweep_collections(now, report)
        if self.orphan_grace is not None:
            self._sweep_orphans(now, known_ids, report)

    def _reap_artifact(self, share_id: str, report: SweepReport) -> None:
        failed = False
        try:
            self.store.delete(share_id)
        except ShareNotFound:
            logger.debug(f"Blob for {share_id} already gone")
        except Exception as exc:
            failed = True
            logger.warning(f"Failed to delete blob {share_id}: {exc}")
        try:
            self.artifacts.delete(share_id)
        except Exception as exc:
            failed = True
            logger.warning(f"Failed to delete metadata {share_id}: {exc}")

        if failed:
            report.failures += 1
            return
        report.reaped += 1
        logger.info(f"Cleaned expired file: {share_id}")
        self.event_logger(EventLogEntry(event_type="share_reaped", asset_type="artifact", asset_id=share_id))

    def _sweep_collections(self, now: datetime, report: SweepReport) -> None:
        for record in self.collections.list():
            self._state = ReaperState.EVALUATING
            collection_id = record.get("id")
            expires_at = _parse_expiry(record)
            if not isinstance(collection_id, str) or expires_at is None or now <= expires_at:
                continue
            self._state = ReaperState.SWEEPING
            try:
                with self.collection_locks.hold(collection_id):
                    # An append may have extended the collection since listing.
                    current = _parse_expiry(self.collections.read(collection_id))
                    if current is not None and now > current:
                        self.collections.delete(collection_id)
                        report.collections_reaped += 1
                        logger.info(f"Cleaned expired collection: {collection_id}")
            except ShareNotFound:
                continue
            except Exception as exc:
                report.failures += 1
                logger.warning(f"Failed to reap collection {collection_id}: {exc}")

    def _sweep_orphans(self, now: datetime, known_ids: Set[str], report: SweepReport) -> None:
        cutoff = now - self.orphan_grace
        for blob_id in self.store.list_ids():
            if blob_id in known_ids:
                continue
            try:
                if self.store.modified_at(blob_id) >= cutoff:
                    continue
                try:
                    self.artifacts.read(blob_id)
                    continue
                except CorruptRecord:
                    # Metadata exists but is unreadable; not an orphan.
                    continue
                except ShareNotFound:
                    pass
                self.store.delete(blob_id)
                report.orphans_reaped += 1
                logger.info(f"Cleaned orphan blob: {blob_id}")
            except ShareNotFound:
                continue
            except Exception as exc:
                report.failures += 1
                logger.warning(f"Failed to reap orphan blob {blob_id}: {exc}")

    async def run_forever(self) -> None:
        """Sweep once immediately, then every ``interval_seconds``."""
        while True:
            await asyncio.to_thread(self.sweep)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="lanshare-reaper")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
