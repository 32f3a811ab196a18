"""File collection data models (Pydantic)."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from lanshare.shares.models import ArtifactMetadata, CamelModel, as_utc


class Collection(CamelModel):
    """Append-only ordered list of artifact entries sharing one id."""
    id: str
    files: List[ArtifactMetadata] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @field_validator("created_at", "updated_at", "expires_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def find(self, file_id: str) -> Optional[ArtifactMetadata]:
        for entry in self.files:
            if entry.id == file_id:
                return entry
        return None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class CollectionCreated(CamelModel):
    id: str
    url: str


class CollectionUpload(CamelModel):
    file: ArtifactMetadata
    collection: Collection
