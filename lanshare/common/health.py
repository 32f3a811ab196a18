"""Health, info and pairing bootstrap routes."""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from lanshare import __version__
from lanshare.common.urls import resolve_base_url

router = APIRouter(tags=["system"])


class HealthStatus(BaseModel):
    status: str
    version: str = __version__
    port: Optional[int] = None
    reaper: Optional[str] = None


class ServerInfo(BaseModel):
    baseUrl: str
    port: int
    dataDir: str
    retentionHours: float


@router.get("/health", response_model=HealthStatus)
def health_check(request: Request):
    reaper = request.app.state.reaper
    return HealthStatus(status="ok", port=request.app.state.settings.port, reaper=reaper.state.value)


@router.get("/info", response_model=ServerInfo)
def server_info(request: Request):
    settings = request.app.state.settings
    return ServerInfo(
        baseUrl=resolve_base_url(request),
        port=settings.port,
        dataDir=str(settings.data_dir),
        retentionHours=settings.retention_hours,
    )


@router.get("/bootstrap")
def bootstrap(request: Request) -> RedirectResponse:
    """Send a device to the front-end with this server prefilled as ?api=."""
    frontend = request.app.state.settings.frontend_url
    target = f"{frontend}?api={quote(resolve_base_url(request), safe='')}"
    return RedirectResponse(target, status_code=302)
