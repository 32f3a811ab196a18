"""Share data models (Pydantic).

Records are persisted and served with camelCase keys, matching what the
browser front-end reads: ``originalName``, ``expiresAt`` and so on.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_MIME_TYPE = "application/octet-stream"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ArtifactMetadata(CamelModel):
    """Metadata for one uploaded artifact; the blob lives in the Artifact Store."""
    id: str
    original_name: str = "download"
    mime_type: str = DEFAULT_MIME_TYPE
    size_bytes: int = Field(0, ge=0)
    uploaded_at: datetime
    expires_at: datetime
    parent_collection_id: Optional[str] = None

    @field_validator("uploaded_at", "expires_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _expiry_after_upload(self) -> "ArtifactMetadata":
        if self.expires_at <= self.uploaded_at:
            raise ValueError("expiresAt must be later than uploadedAt")
        return self

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class ShareReceipt(CamelModel):
    id: str
    share_url: str
    expires_at: datetime


@dataclass
class ShareDownload:
    """An opened artifact ready to stream; the caller owns ``stream``."""
    metadata: ArtifactMetadata
    stream: BinaryIO
    filename: str
    content_type: str

    def close(self) -> None:
        self.stream.close()
