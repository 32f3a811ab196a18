"""Tests for the Expiry Reaper."""
import asyncio
import io
import os
from datetime import datetime, timedelta, timezone

import pytest

from lanshare.artifact_store.store import FileSystemArtifactStore, InMemoryArtifactStore
from lanshare.common.errors import ShareNotFound
from lanshare.file_collections.service import CollectionService
from lanshare.ledger.repository import FileSystemMetadataLedger, InMemoryMetadataLedger
from lanshare.reaper.service import ExpiryReaper, ReaperState
from lanshare.shares.service import ShareService


@pytest.fixture
def shares(tmp_path, clock, events):
    return ShareService(
        FileSystemArtifactStore(tmp_path / "blobs"),
        FileSystemMetadataLedger(tmp_path / "meta", "artifacts"),
        retention=timedelta(hours=24),
        clock=clock,
        event_logger=events,
    )


@pytest.fixture
def reaper(shares, tmp_path, clock, events):
    return ExpiryReaper(
        shares.store,
        shares.ledger,
        collections=FileSystemMetadataLedger(tmp_path / "meta", "collections"),
        clock=clock,
        event_logger=events,
    )


def test_sweep_removes_only_expired(shares, reaper, clock, events):
    old = shares.store_artifact("old.txt", None, io.BytesIO(b"old"))
    clock.advance(hours=12)
    fresh = shares.store_artifact("fresh.txt", None, io.BytesIO(b"fresh"))
    clock.advance(hours=12, seconds=1)

    report = reaper.sweep()

    assert report.scanned == 2
    assert report.reaped == 1
    assert report.failures == 0
    assert not shares.store.exists(old.id)
    with pytest.raises(ShareNotFound):
        shares.ledger.read(old.id)
    assert shares.store.exists(fresh.id)
    assert "share_reaped" in events.types()
    assert reaper.state == ReaperState.IDLE


def test_expired_then_reaped_changes_error_kind(shares, reaper, clock):
    from lanshare.common.errors import ShareExpired

    metadata = shares.store_artifact("a.txt", None, io.BytesIO(b"a"))
    clock.advance(days=2)
    with pytest.raises(ShareExpired):
        shares.resolve(metadata.id)
    reaper.sweep()
    with pytest.raises(ShareNotFound) as excinfo:
        shares.resolve(metadata.id)
    assert not isinstance(excinfo.value, ShareExpired)


def test_manual_backdated_expiry_is_reaped(shares, reaper, clock):
    metadata = shares.store_artifact("hello.txt", "text/plain", io.BytesIO(b"hello world"))
    record = shares.ledger.read(metadata.id)
    record["expiresAt"] = (clock.now - timedelta(seconds=1)).isoformat()
    record["uploadedAt"] = (clock.now - timedelta(days=1)).isoformat()
    shares.ledger.write(metadata.id, record)

    reaper.sweep()

    assert not shares.store.exists(metadata.id)
    with pytest.raises(ShareNotFound):
        shares.resolve(metadata.id)


def test_missing_blob_does_not_block_metadata_removal(shares, reaper, clock):
    metadata = shares.store_artifact("a.txt", None, io.BytesIO(b"a"))
    shares.store.delete(metadata.id)
    clock.advance(days=2)

    report = reaper.sweep()

    assert report.reaped == 1
    with pytest.raises(ShareNotFound):
        shares.ledger.read(metadata.id)


def test_failure_on_one_record_does_not_abort_sweep(clock, events):
    store = InMemoryArtifactStore()
    ledger = InMemoryMetadataLedger("artifacts")
    shares = ShareService(store, ledger, clock=clock, event_logger=events)
    first = shares.store_artifact("1", None, io.BytesIO(b"1"))
    second = shares.store_artifact("2", None, io.BytesIO(b"2"))
    clock.advance(days=2)

    real_delete = store.delete

    def _flaky_delete(share_id):
        if share_id == first.id:
            raise PermissionError("read-only filesystem")
        return real_delete(share_id)

    store.delete = _flaky_delete
    reaper = ExpiryReaper(store, ledger, clock=clock, event_logger=events)
    report = reaper.sweep()

    assert report.failures == 1
    assert report.reaped == 1
    # Metadata for the failing record was still removed independently.
    assert ledger.list() == []
    assert not store.exists(second.id)
    assert store.exists(first.id)


def test_unreadable_records_are_skipped(shares, reaper, tmp_path):
    shares.ledger.write("noexpiry", {"id": "noexpiry"})
    shares.ledger.write("badexpiry", {"id": "badexpiry", "expiresAt": "someday"})
    (tmp_path / "meta" / "artifacts" / "corrupt.json").write_text("{", encoding="utf-8")

    report = reaper.sweep()

    assert report.skipped == 2
    assert report.failures == 0
    assert shares.ledger.read("noexpiry") == {"id": "noexpiry"}


def test_sweep_never_raises_when_listing_fails(clock, events):
    class _BrokenLedger(InMemoryMetadataLedger):
        def list(self):
            raise OSError("disk unplugged")

    reaper = ExpiryReaper(InMemoryArtifactStore(), _BrokenLedger("artifacts"), clock=clock, event_logger=events)
    report = reaper.sweep()
    assert report.failures == 1
    assert reaper.last_report is report


def test_expired_collections_are_reaped(shares, reaper, tmp_path, clock):
    collections = CollectionService(reaper.collections, shares, locks=reaper.collection_locks)
    stale = collections.create()
    clock.advance(hours=20)
    live = collections.create()
    clock.advance(hours=5)

    report = reaper.sweep()

    assert report.collections_reaped == 1
    with pytest.raises(ShareNotFound):
        collections.get(stale.id)
    assert collections.get(live.id).id == live.id


def test_orphan_blobs_are_swept_after_grace(tmp_path, clock, events):
    store = FileSystemArtifactStore(tmp_path / "blobs")
    ledger = FileSystemMetadataLedger(tmp_path / "meta", "artifacts")
    store.put("orphan", io.BytesIO(b"lost"))
    store.put("recent", io.BytesIO(b"new"))
    store.put("tracked", io.BytesIO(b"kept"))
    ledger.write(
        "tracked",
        {"id": "tracked", "uploadedAt": clock.now.isoformat(), "expiresAt": (clock.now + timedelta(hours=1)).isoformat()},
    )
    old = (clock.now - timedelta(days=3)).timestamp()
    os.utime(tmp_path / "blobs" / "orphan", (old, old))
    os.utime(tmp_path / "blobs" / "tracked", (old, old))
    recent = (clock.now - timedelta(hours=1)).timestamp()
    os.utime(tmp_path / "blobs" / "recent", (recent, recent))

    reaper = ExpiryReaper(store, ledger, clock=clock, orphan_grace=timedelta(hours=24), event_logger=events)
    report = reaper.sweep()

    assert report.orphans_reaped == 1
    assert store.list_ids() == ["recent", "tracked"]


def test_orphan_sweep_disabled_by_default(clock, events):
    store = InMemoryArtifactStore()
    store.put("orphan", io.BytesIO(b"lost"))
    store.backdate("orphan", datetime(2000, 1, 1, tzinfo=timezone.utc))
    reaper = ExpiryReaper(store, InMemoryMetadataLedger("artifacts"), clock=clock, event_logger=events)
    assert reaper.sweep().orphans_reaped == 0
    assert store.exists("orphan")


@pytest.mark.anyio
async def test_run_forever_sweeps_eagerly_then_stops(shares, clock, events):
    metadata = shares.store_artifact("a.txt", None, io.BytesIO(b"a"))
    clock.advance(days=2)
    reaper = ExpiryReaper(shares.store, shares.ledger, clock=clock, interval_seconds=3600, event_logger=events)

    task = reaper.start()
    assert reaper.start() is task
    for _ in range(200):
        if reaper.last_report is not None:
            break
        await asyncio.sleep(0.01)
    await reaper.stop()

    assert task.done()
    assert reaper.last_report is not None
    assert reaper.last_report.reaped == 1
    assert not shares.store.exists(metadata.id)
