"""FastAPI application factory wiring the share store together."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from lanshare import __version__
from lanshare.artifact_store.store import ArtifactStore, FileSystemArtifactStore
from lanshare.common.error_envelope import install_error_handlers
from lanshare.common.health import router as health_router
from lanshare.common.locks import KeyedLock
from lanshare.config.runtime_config import ShareSettings, load_settings
from lanshare.file_collections.routes import router as collections_router
from lanshare.file_collections.service import CollectionService
from lanshare.ledger.repository import FileSystemMetadataLedger, MetadataLedger
from lanshare.logging.event_log import EventLogger, default_event_logger
from lanshare.reaper.service import ExpiryReaper
from lanshare.shares.models import _now
from lanshare.shares.routes import router as shares_router
from lanshare.shares.service import ShareService
from lanshare.text_notes.routes import router as notes_router
from lanshare.text_notes.service import TextNoteService

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[ShareSettings] = None,
    store: Optional[ArtifactStore] = None,
    artifacts_ledger: Optional[MetadataLedger] = None,
    collections_ledger: Optional[MetadataLedger] = None,
    notes_ledger: Optional[MetadataLedger] = None,
    clock: Callable[[], datetime] = _now,
    event_logger: EventLogger = default_event_logger,
) -> FastAPI:
    """Build the app; any store left as None gets the filesystem implementation."""
    settings = settings or load_settings()
    store = store or FileSystemArtifactStore(settings.blob_dir)
    artifacts_ledger = artifacts_ledger or FileSystemMetadataLedger(settings.meta_dir, "artifacts")
    collections_ledger = collections_ledger or FileSystemMetadataLedger(settings.meta_dir, "collections")
    notes_ledger = notes_ledger or FileSystemMetadataLedger(settings.meta_dir, "notes")

    share_service = ShareService(
        store,
        artifacts_ledger,
        retention=settings.retention,
        clock=clock,
        event_logger=event_logger,
        max_upload_bytes=settings.max_upload_bytes,
    )
    collection_locks = KeyedLock()
    reaper = ExpiryReaper(
        store,
        artifacts_ledger,
        collections=collections_ledger,
        clock=clock,
        interval_seconds=settings.reaper_interval_seconds,
        orphan_grace=settings.retention if settings.orphan_sweep else None,
        collection_locks=collection_locks,
        event_logger=event_logger,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.start_reaper:
            reaper.start()
            logger.info(f"Reaper running every {settings.reaper_interval_seconds:.0f}s")
        try:
            yield
        finally:
            await reaper.stop()

    app = FastAPI(title="LAN Share", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.share_service = share_service
    app.state.collection_service = CollectionService(collections_ledger, share_service, locks=collection_locks)
    app.state.note_service = TextNoteService(notes_ledger, clock=clock, event_logger=event_logger)
    app.state.reaper = reaper

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.middleware("http")
    async def powered_by(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Powered-By"] = "LAN File Share"
        return response

    install_error_handlers(app)
    app.include_router(health_router)
    app.include_router(shares_router)
    app.include_router(collections_router)
    app.include_router(notes_router)
    return app
