"""Text note service (create, overwrite, fragment append)."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from pydantic import ValidationError

from lanshare.common.errors import CorruptRecord, ShareNotFound, ShareValidationError
from lanshare.common.ids import is_valid_share_id, new_share_id
from lanshare.common.locks import KeyedLock
from lanshare.ledger.repository import MetadataLedger
from lanshare.logging.event_log import EventLogEntry, EventLogger, default_event_logger
from lanshare.shares.models import _now
from lanshare.text_notes.models import NOTE_SEPARATOR, TextNote

logger = logging.getLogger(__name__)


class TextNoteService:
    def __init__(
        self,
        ledger: MetadataLedger,
        clock: Callable[[], datetime] = _now,
        locks: Optional[KeyedLock] = None,
        event_logger: EventLogger = default_event_logger,
    ) -> None:
        self.ledger = ledger
        self.clock = clock
        self.locks = locks or KeyedLock()
        self.event_logger = event_logger

    def _load(self, note_id: str) -> TextNote:
        try:
            record = self.ledger.read(note_id)
        except CorruptRecord as exc:
            logger.error(f"Corrupt note record {note_id}: {exc}")
            raise
        except ShareNotFound:
            raise ShareNotFound("Text note not found", details={"id": note_id})
        try:
            return TextNote.model_validate(record)
        except ValidationError as exc:
            raise CorruptRecord(f"Note {note_id} is malformed") from exc

    def _persist(self, note: TextNote) -> TextNote:
        self.ledger.write(note.id, note.to_record())
        self.event_logger(
            EventLogEntry(
                event_type="note_saved",
                asset_type="text_note",
                asset_id=note.id,
                metadata={"length": len(note.content)},
            )
        )
        return note

    def create(self, content: Optional[str] = None) -> TextNote:
        note = TextNote(id=new_share_id(), content=content or "", created_at=self.clock())
        return self._persist(note)

    def get(self, note_id: str) -> TextNote:
        return self._load(note_id)

    def save(self, note_id: str, content: Optional[str]) -> TextNote:
        """Overwrite the note, creating it under ``note_id`` when missing.

        Empty content keeps what is already stored.
        """
        if not is_valid_share_id(note_id):
            raise ShareValidationError("Invalid note id", details={"id": note_id})
        with self.locks.hold(note_id):
            try:
                note = self._load(note_id)
            except CorruptRecord:
                raise
            except ShareNotFound:
                return self._persist(TextNote(id=note_id, content=content or "", created_at=self.clock()))
            note.content = content or note.content
            note.updated_at = self.clock()
            return self._persist(note)

    def append_fragment(self, note_id: str, fragment: str) -> TextNote:
        if not is_valid_share_id(note_id):
            raise ShareValidationError("Invalid note id", details={"id": note_id})
        if not fragment.strip():
            raise ShareValidationError("Fragment is empty")
        with self.locks.hold(note_id):
            try:
                note = self._load(note_id)
            except CorruptRecord:
                raise
            except ShareNotFound:
                note = TextNote(id=note_id, content="", created_at=self.clock())
            note.content = NOTE_SEPARATOR.join(note.fragments() + [fragment])
            note.updated_at = self.clock()
            return self._persist(note)
