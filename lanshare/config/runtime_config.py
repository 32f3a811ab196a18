"""Runtime configuration helpers for LAN Share.

Every knob is read from the environment; ``load_settings`` snapshots them into
a ``ShareSettings`` model that ``create_app`` injects into the services.
"""
from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_RETENTION_HOURS = 24.0
DEFAULT_REAPER_INTERVAL_SECONDS = 60 * 60
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
DEFAULT_PORT = 3000
DEFAULT_FRONTEND_URL = "https://your-site.netlify.app"

_FALSEY = {"0", "false", "no", "off"}


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def get_data_dir() -> Path:
    return Path(_get_env("SHARE_DATA_DIR") or Path.cwd() / "var" / "lanshare")


def get_retention_hours() -> float:
    return float(_get_env("SHARE_RETENTION_HOURS") or DEFAULT_RETENTION_HOURS)


def get_reaper_interval_seconds() -> float:
    return float(_get_env("SHARE_REAPER_INTERVAL_SECONDS") or DEFAULT_REAPER_INTERVAL_SECONDS)


def get_orphan_sweep_enabled() -> bool:
    return (_get_env("SHARE_ORPHAN_SWEEP") or "1").strip().lower() not in _FALSEY


def get_max_upload_bytes() -> int:
    return int(_get_env("SHARE_MAX_UPLOAD_BYTES") or DEFAULT_MAX_UPLOAD_BYTES)


def get_public_base_url() -> Optional[str]:
    value = _get_env("PUBLIC_BASE_URL")
    return value.rstrip("/") if value else None


def get_frontend_url() -> str:
    return _get_env("FRONTEND_URL") or DEFAULT_FRONTEND_URL


def get_host() -> str:
    return _get_env("HOST") or "0.0.0.0"


def get_port() -> int:
    return int(_get_env("PORT") or DEFAULT_PORT)


def get_log_level() -> str:
    return (_get_env("LOG_LEVEL") or "INFO").upper()


class ShareSettings(BaseModel):
    data_dir: Path
    retention_hours: float = Field(DEFAULT_RETENTION_HOURS, gt=0)
    reaper_interval_seconds: float = Field(DEFAULT_REAPER_INTERVAL_SECONDS, gt=0)
    orphan_sweep: bool = True
    max_upload_bytes: int = Field(DEFAULT_MAX_UPLOAD_BYTES, gt=0)
    public_base_url: Optional[str] = None
    frontend_url: str = DEFAULT_FRONTEND_URL
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    start_reaper: bool = True

    @field_validator("public_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        return value.rstrip("/") if value else None

    @property
    def retention(self) -> timedelta:
        return timedelta(hours=self.retention_hours)

    @property
    def blob_dir(self) -> Path:
        return self.data_dir / "blobs"

    @property
    def meta_dir(self) -> Path:
        return self.data_dir / "meta"


def load_settings(**overrides) -> ShareSettings:
    """Snapshot the environment, letting callers (tests, CLI) override fields."""
    values = dict(
        data_dir=get_data_dir(),
        retention_hours=get_retention_hours(),
        reaper_interval_seconds=get_reaper_interval_seconds(),
        orphan_sweep=get_orphan_sweep_enabled(),
        max_upload_bytes=get_max_upload_bytes(),
        public_base_url=get_public_base_url(),
        frontend_url=get_frontend_url(),
        host=get_host(),
        port=get_port(),
        log_level=get_log_level(),
    )
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ShareSettings(**values)
