"""Text note data models (Pydantic)."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import field_validator

from lanshare.shares.models import CamelModel, as_utc

NOTE_SEPARATOR = "\n---\n"


class TextNote(CamelModel):
    id: str
    content: str = ""
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    def fragments(self) -> List[str]:
        """Content split on the separator; blank fragments are dropped."""
        return [part for part in self.content.split(NOTE_SEPARATOR) if part.strip()]


class NoteContent(CamelModel):
    content: Optional[str] = None


class NoteFragment(CamelModel):
    fragment: str


class NoteCreated(CamelModel):
    id: str
    url: str
